"""Transaction and validation helpers shared by the services"""
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional

import pydantic

from impulse.db.store import HabitStore, StoreSession
from impulse.exceptions import ImpulseError, ValidationError, wrap_external_exception
from impulse.observability.metrics import errors_total

logger = logging.getLogger(__name__)


@asynccontextmanager
async def unit_of_work(
    store: HabitStore,
    operation: str,
    user_id: Optional[str] = None,
    context: Optional[Dict[str, Any]] = None
) -> AsyncIterator[StoreSession]:
    """
    Open a store transaction for one use case

    Our own errors (not found, already completed, ...) pass through untouched;
    anything else is wrapped into the exception hierarchy (store errors become
    PersistenceError or ConnectionError, other bugs a plain ImpulseError).
    Either way the transaction is rolled back and nothing is committed.
    """
    try:
        async with store.transaction() as session:
            yield session
    except ImpulseError:
        raise
    except Exception as e:
        errors_total.labels(error_type=type(e).__name__, component="store").inc()
        raise wrap_external_exception(
            e,
            operation=operation,
            user_id=user_id,
            context=context
        ) from e


def to_validation_error(error: pydantic.ValidationError, user_id: Optional[str] = None) -> ValidationError:
    """Turn the first pydantic error into our ValidationError"""
    first = error.errors()[0]
    field = ".".join(str(part) for part in first.get("loc", ())) or None
    return ValidationError(
        first.get("msg", str(error)),
        field=field,
        value=first.get("input"),
        user_id=user_id,
        user_message=first.get("msg")
    )
