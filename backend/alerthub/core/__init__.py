"""
Core module initialization.
"""
from .logging import get_logger, setup_logging
from .security import create_access_token, decode_jwt_token, verify_token

__all__ = [
    # Logging
    "setup_logging",
    "get_logger",
    # Security
    "create_access_token",
    "decode_jwt_token",
    "verify_token",
]
