"""
Error taxonomy for the cache and its collaborators.

Store errors are recoverable and carry the failing operation plus the identity
of what it touched. Schema errors abort startup. Constraint violations are
programming errors in the caller.
"""

import sqlite3
from contextlib import contextmanager
from typing import Any, Iterator


class HNReaderError(Exception):
    """Base class for all hnreader errors."""


class StoreError(HNReaderError):
    """A read or write against the store failed."""

    def __init__(self, operation: str, message: str, **context: Any):
        self.operation = operation
        self.context = context
        details = ", ".join(f"{key}={value}" for key, value in context.items())
        super().__init__(
            f"{operation} failed: {message}" + (f" ({details})" if details else "")
        )


class SchemaError(StoreError):
    """A schema migration step failed. The store must not be used."""

    def __init__(self, version: int, message: str):
        self.version = version
        super().__init__("migrate", message, version=version)


class ConstraintViolation(HNReaderError, ValueError):
    """Malformed input reached the store (e.g. a bad story id list)."""


class ItemNotFoundError(HNReaderError, LookupError):
    """The requested story or comment is not cached."""


class FetchError(HNReaderError):
    """The remote service could not be reached or returned garbage."""


@contextmanager
def store_errors(operation: str, **context: Any) -> Iterator[None]:
    """
    Translate sqlite3 errors raised inside the block.

    Usage:
        with store_errors("replace_membership", category=category.value):
            ...
    """
    try:
        yield
    except sqlite3.IntegrityError as e:
        raise ConstraintViolation(f"{operation}: {e}") from e
    except sqlite3.Error as e:
        raise StoreError(operation, str(e), **context) from e
