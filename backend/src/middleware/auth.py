"""
API key auth for the planner API.

API_KEY_REQUIRED=true: every non-exempt request needs X-API-Key or Authorization: Bearer <key>.
Operator paths (/network/...) need a key whenever API_KEYS is set, even if API_KEY_REQUIRED is false.
"""
import logging
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

logger = logging.getLogger(__name__)

AUTH_EXEMPT_PATHS = {"/health", "/metrics", "/favicon.ico"}
OPERATOR_PATH_PREFIXES = ("/network/",)


def get_valid_api_keys(api_keys_str: str) -> set[str]:
    return {k.strip() for k in api_keys_str.split(",") if k.strip()}


def extract_api_key(request: Request) -> str | None:
    key = request.headers.get("X-API-Key")
    if key:
        return key.strip()
    auth = request.headers.get("Authorization")
    if auth and auth.startswith("Bearer "):
        return auth[7:].strip()
    return None


def is_operator_path(path: str) -> bool:
    return path.startswith(OPERATOR_PATH_PREFIXES)


class OptionalAPIKeyMiddleware(BaseHTTPMiddleware):
    """Reject requests without a valid API key where one is needed (see module docstring)."""

    def __init__(self, app, api_key_required: bool, api_keys: set[str]):
        super().__init__(app)
        self.api_key_required = api_key_required
        self.valid_keys = api_keys

    def _needs_key(self, path: str) -> bool:
        if path in AUTH_EXEMPT_PATHS:
            return False
        if self.api_key_required:
            return True
        return bool(self.valid_keys) and is_operator_path(path)

    async def dispatch(self, request: Request, call_next):
        path = request.url.path
        if not self._needs_key(path):
            return await call_next(request)
        key = extract_api_key(request)
        if not key or key not in self.valid_keys:
            logger.warning("telemetry auth_failed path=%s operator=%s", path, is_operator_path(path))
            return JSONResponse(
                status_code=401,
                content={"detail": "Invalid or missing API key. Provide X-API-Key or Authorization: Bearer <key>."},
            )
        return await call_next(request)
