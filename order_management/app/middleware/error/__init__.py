"""
Error handling package.
"""

from .error_handler import OrderManagementErrorHandler, setup_order_error_handling

__all__ = ["OrderManagementErrorHandler", "setup_order_error_handling"]
