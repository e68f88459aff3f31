from src.middleware.auth import OptionalAPIKeyMiddleware, get_valid_api_keys, is_operator_path
from src.middleware.request_logging import REQUEST_ID_HEADER, RequestLoggingMiddleware

__all__ = [
    "OptionalAPIKeyMiddleware",
    "REQUEST_ID_HEADER",
    "RequestLoggingMiddleware",
    "get_valid_api_keys",
    "is_operator_path",
]
