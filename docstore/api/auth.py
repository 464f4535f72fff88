from __future__ import annotations

import secrets

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from docstore.errors import AuthError

bearer_scheme = HTTPBearer(auto_error=False)


def require_api_key(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> None:
    settings = request.app.state.services.settings
    if not settings.api_key:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="API key is not configured",
        )
    if credentials is None:
        raise AuthError("Missing bearer token")
    if not secrets.compare_digest(credentials.credentials.encode(), settings.api_key.get_secret_value().encode()):
        raise AuthError("Invalid API key")


__all__ = ["require_api_key", "bearer_scheme"]
