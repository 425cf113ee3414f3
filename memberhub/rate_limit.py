"""Per-IP request rate limits (slowapi)."""

from slowapi import Limiter
from slowapi.util import get_remote_address
from starlette.requests import Request

from memberhub.dependencies import get_client_ip


def client_key(request: Request) -> str:
    return get_client_ip(request) or get_remote_address(request)


limiter = Limiter(key_func=client_key)

# Signup and password reset requests
AUTH_LIMIT = "10 per 15 minutes"
# Password step of login
LOGIN_LIMIT = "5 per 10 minutes"
# Public snapshot history reads
SNAPSHOT_READ_LIMIT = "100/minute"
