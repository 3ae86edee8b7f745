"""
Error handling helpers and decorators for raffle operations
Reduces repetitive try/except logging around database work
"""

from functools import wraps
import logging

from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)


def db_error_handler(func):
    """
    Decorator for database operations
    Logs SQLAlchemy failures with the function name and re-raises them

    Usage:
        @db_error_handler
        def create_raffle(engine, name):
            # Database operations here
            return raffle_id
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except SQLAlchemyError as e:
            logger.error(f"Database error in {func.__name__}: {e}", exc_info=True)
            raise  # Re-raise for caller to handle
    return wrapper


class log_exceptions:
    """
    Context manager that logs unexpected exceptions with custom context

    Exceptions listed in `expected` are domain outcomes (bad requests,
    conflicts) and pass through with a warning instead of a traceback.

    Usage:
        with log_exceptions("allocating tickets", expected=(AllocationError,), raffle_id=3):
            assigner.assign_tickets(...)
    """
    def __init__(self, operation, expected=(), **context):
        self.operation = operation
        self.expected = expected
        self.context = context

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is None:
            return False

        context_str = ', '.join(f"{k}={v}" for k, v in self.context.items())
        if self.expected and issubclass(exc_type, self.expected):
            logger.warning(f"{self.operation} rejected [{context_str}]: {exc_val}")
        else:
            logger.error(f"Error during {self.operation} [{context_str}]: {exc_val}", exc_info=True)
        return False  # Don't suppress exception
