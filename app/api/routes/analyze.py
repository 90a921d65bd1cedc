from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends

from app.api.deps import get_optional_user_id
from app.config import settings
from app.models.schemas import AnalyzeRequest, AnalyzeResponse
from app.services import logger as log_service
from app.services.analysis_pipeline import AnalysisPipeline
from app.services.errors import AnalysisError

router = APIRouter(prefix="/api/analyze", tags=["analyze"])


@router.post("", response_model=AnalyzeResponse, response_model_exclude_none=True)
async def analyze_problem(
    request: AnalyzeRequest,
    user_id: UUID | None = Depends(get_optional_user_id),
):
    """Search discussions, analyze them and store the resulting problems."""
    if user_id is not None:
        log_service.logger.info(f"Analysis requested by user {user_id}")

    pipeline = AnalysisPipeline.from_settings(settings)
    try:
        outcome = await pipeline.run(request)
    except AnalysisError:
        raise
    except Exception as e:
        log_service.logger.exception("Unhandled error during analysis")
        raise AnalysisError(detail=str(e)) from e

    return AnalyzeResponse(success=True, data=outcome.records, sources=outcome.sources)
