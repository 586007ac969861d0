import hmac
import os

from fastapi import HTTPException, Request

from redeemer.app.exceptions import ServiceMisconfiguredError


def get_admin_token() -> str:
    """Get admin token from environment variable.

    The token is cached on first access to avoid repeated environment
    variable lookups.

    Raises:
        ServiceMisconfiguredError: If ADMIN_TOKEN is not set
    """
    if not hasattr(get_admin_token, "_cached_token"):
        token = os.getenv("ADMIN_TOKEN")
        if token is not None:
            # Normalize accidental whitespace/newline from env/secret stores.
            token = token.strip()
        if not token:
            raise ServiceMisconfiguredError("Admin token is not configured")
        get_admin_token._cached_token = token
    return get_admin_token._cached_token


def get_bearer_token(request: Request) -> str | None:
    """Extract Bearer token from Authorization header.

    Returns:
        The token string if present, None otherwise
    """
    auth = request.headers.get("Authorization", "")
    if not auth.lower().startswith("bearer "):
        return None
    return auth[7:].strip()


def get_admin_credential(request: Request) -> str | None:
    """Bearer token, falling back to the X-Admin-Password header."""
    token = get_bearer_token(request)
    if token:
        return token
    legacy = request.headers.get("X-Admin-Password")
    return legacy.strip() if legacy else None


def require_admin(request: Request) -> str:
    """Validate admin token for protected endpoints.

    Returns:
        Admin identifier if valid

    Raises:
        ServiceMisconfiguredError: 500 if ADMIN_TOKEN is not configured
        HTTPException: 401 if admin token is missing or invalid
    """
    expected_token = get_admin_token()
    token = get_admin_credential(request) or ""

    # Always compare, in constant time, so timing does not leak the token.
    if not hmac.compare_digest(token.encode(), expected_token.encode()):
        raise HTTPException(
            status_code=401,
            detail="Unauthorized",
            headers={"WWW-Authenticate": 'Bearer realm="admin"'},
        )

    return "admin"
