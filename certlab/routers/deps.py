"""Request identity dependencies shared by the routers."""
from fastapi import HTTPException, Request
from certlab.config import settings
from certlab.constants import USER_ID_HEADER, TENANT_ID_HEADER


def get_user_id(request: Request) -> str:
    """Extract the user ID set by the authentication layer."""
    user_id = request.headers.get(USER_ID_HEADER, "").strip()
    if not user_id:
        raise HTTPException(status_code=401, detail="No user session found")
    return user_id


def get_tenant_id(request: Request) -> int:
    """Extract the tenant ID, defaulting to the configured tenant."""
    raw = request.headers.get(TENANT_ID_HEADER)
    if raw is None or raw.strip() == "":
        return settings.DEFAULT_TENANT_ID
    try:
        tenant_id = int(raw)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid tenant ID") from None
    if tenant_id < 1:
        raise HTTPException(status_code=400, detail="Invalid tenant ID")
    return tenant_id
