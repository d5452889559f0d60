"""Credentials check for the target administration and emit routes.

The inbound event endpoint is left open; only routes that change the
registry or publish events go through :func:`require_admin`.
"""

from fastapi import Header, HTTPException, status

from .config import settings


def _admin_secrets() -> set[str]:
    secrets = {k.strip() for k in settings.API_KEYS.split(",") if k.strip()}
    token = (settings.API_TOKEN or "").strip()
    if token:
        secrets.add(token)
    return secrets


def require_admin(
    authorization: str | None = Header(default=None),
    x_api_key: str | None = Header(default=None, alias="X-API-Key"),
):
    """Accept a bearer token or an `X-API-Key`.

    Wrong credentials are a 403; no credentials at all is a 401.
    `API_TOKEN` is also accepted as an API key.
    """
    secrets = _admin_secrets()
    if authorization and authorization.startswith("Bearer "):
        if authorization.split(" ", 1)[1].strip() in secrets:
            return
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="bad admin token")
    if x_api_key is not None:
        if x_api_key.strip() in secrets:
            return
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="bad admin key")
    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="admin credentials required",
        headers={"WWW-Authenticate": "Bearer"},
    )
