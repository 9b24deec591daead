"""API dependencies for dependency injection."""

import secrets
from typing import Annotated, Optional

from fastapi import Depends, Header, HTTPException, Request, status

from nexa_search.config import Settings, get_settings
from nexa_search.domain.services.search import SearchEngine


def get_app_settings(request: Request) -> Settings:
    """Settings attached to the app, falling back to the environment."""
    settings = getattr(request.app.state, "settings", None)
    return settings if settings is not None else get_settings()


async def get_search_engine(request: Request) -> SearchEngine:
    """Get the shared search engine, initializing it on first use.

    Raises:
        HTTPException: If the application has no engine configured.
    """
    engine: Optional[SearchEngine] = getattr(request.app.state, "search_engine", None)
    if engine is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Search engine not available",
        )
    await engine.initialize()
    return engine


def require_admin(
    settings: Annotated[Settings, Depends(get_app_settings)],
    x_admin_token: Annotated[Optional[str], Header()] = None,
) -> None:
    """Gate index administration behind SEARCH_ADMIN_TOKEN when it is set.

    Raises:
        HTTPException: If a token is configured and the header does not match.
    """
    expected = settings.search_admin_token
    if not expected:
        return

    if not x_admin_token or not secrets.compare_digest(x_admin_token, expected):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing admin token",
        )


# Type aliases for cleaner route signatures
SearchEngineDep = Annotated[SearchEngine, Depends(get_search_engine)]
SettingsDep = Annotated[Settings, Depends(get_app_settings)]
AdminRequired = Depends(require_admin)
