"""
api/errors.py -- Per-route translation of store failures.

Every route wraps its store calls in store_errors("<what failed>"). A database
error is logged with its traceback and re-raised as Internal carrying the
route's own message, which the exception handlers in api/main.py render as
500 {"message": ...}. Domain errors (NotFound, Forbidden, ...) pass through
untouched.
"""

import logging
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy.exc import SQLAlchemyError

from core.errors import Internal

logger = logging.getLogger("bookorbit.api")


@contextmanager
def store_errors(message: str) -> Iterator[None]:
    try:
        yield
    except SQLAlchemyError:
        logger.exception(message)
        raise Internal(message)
