"""Services package exports."""

from vidtube.services.logging_service import configure_logging, get_logger
from vidtube.services.password_service import hash_password, verify_password

__all__ = [
    "configure_logging",
    "get_logger",
    "hash_password",
    "verify_password",
]
