"""Shared slowapi limiter.

Requests are keyed by the X-User-Id header so users behind one proxy do not
share a budget; anonymous requests fall back to the client address.
"""
from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address
from certlab.constants import USER_ID_HEADER


def rate_limit_key(request: Request) -> str:
    user_id = request.headers.get(USER_ID_HEADER)
    if user_id:
        return f"user:{user_id}"
    return get_remote_address(request)


limiter = Limiter(key_func=rate_limit_key, default_limits=["100/minute"])
