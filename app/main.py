from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.routes import analyze, problems, saved_searches
from app.config import settings
from app.services.errors import AnalysisError
from app.services.logger import logger


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    yield
    # Shutdown


app = FastAPI(
    title="Still Manual",
    description="Finds manual workflows in online discussions and analyzes how to automate them",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(AnalysisError)
async def analysis_error_handler(request: Request, exc: AnalysisError):
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(f"{type(exc).__name__} on {request.url.path}: {exc.detail or exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.message},
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    logger.warning(f"Invalid request body on {request.url.path}: {exc.errors()}")
    return JSONResponse(
        status_code=400,
        content={"success": False, "error": "Invalid request body"},
    )


# Routes
app.include_router(analyze.router)
app.include_router(problems.router)
app.include_router(saved_searches.router)


@app.get("/api/health")
async def health():
    return {"status": "ok", "service": "stillmanual"}
