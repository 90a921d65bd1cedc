from __future__ import annotations

import asyncio
from uuid import UUID

from fastapi import Header
from supabase import Client

from app.config import settings
from app.services import supabase
from app.services.errors import AuthenticationError, ConfigurationError

_auth_client: Client | None = None


def auth_client() -> Client:
    """Anon-key client used only to verify user tokens."""
    global _auth_client
    if not settings.supabase_url or not settings.supabase_anon_key:
        raise ConfigurationError("SUPABASE_URL and SUPABASE_ANON_KEY are required for auth")
    if _auth_client is None:
        _auth_client = supabase.get_client(settings.supabase_url, settings.supabase_anon_key)
    return _auth_client


def get_db() -> Client:
    if not settings.supabase_url or not settings.supabase_service_role_key:
        raise ConfigurationError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY are required")
    return supabase.client()


async def get_current_user_id(authorization: str | None = Header(default=None)) -> UUID:
    if not authorization or not authorization.startswith("Bearer "):
        raise AuthenticationError()
    token = authorization.removeprefix("Bearer ").strip()

    try:
        response = await asyncio.to_thread(auth_client().auth.get_user, token)
    except ConfigurationError:
        raise
    except Exception as e:
        raise AuthenticationError("Invalid authentication", detail=str(e)) from e

    user = getattr(response, "user", None)
    if user is None:
        raise AuthenticationError("Invalid authentication")
    return UUID(str(user.id))


async def get_optional_user_id(
    authorization: str | None = Header(default=None),
) -> UUID | None:
    """Resolve the caller only when the deployment requires auth."""
    if not settings.require_auth:
        return None
    return await get_current_user_id(authorization)
