"""
Error taxonomy for the POS API.

Every failure a handler can produce is a PosError subclass; main.py renders them
as `{"message": ..., "error": ...}` JSON bodies with the class's status code.
"""

import logging
from contextlib import contextmanager
from typing import Optional

from pymongo.errors import PyMongoError

logger = logging.getLogger(__name__)


class PosError(Exception):
    status_code = 400

    def __init__(self, message: str, error: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.error = error

    def to_dict(self) -> dict:
        body = {"message": self.message}
        if self.error:
            body["error"] = self.error
        return body


class ValidationError(PosError):
    pass


class ConflictError(PosError):
    pass


class AuthError(PosError):
    pass


class NotFoundError(PosError):
    status_code = 404


class StoreError(PosError):
    status_code = 500


@contextmanager
def store_operation(message: str):
    """Convert driver and filesystem failures into a StoreError carrying `message`."""
    try:
        yield
    except PosError:
        raise
    except (PyMongoError, OSError) as e:
        logger.exception(message)
        raise StoreError(message, error=str(e)) from e
