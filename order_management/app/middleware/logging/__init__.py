from .request_logging import RequestLoggingMiddleware, setup_request_logging

__all__ = ["RequestLoggingMiddleware", "setup_request_logging"]
