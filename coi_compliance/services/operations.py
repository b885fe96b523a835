"""Library boundary: turns service calls into typed results.

Callers that do not want exceptions wrap a service coroutine with
``run_operation`` and inspect ``ok``/``data``/``error`` instead.
"""

from typing import Any, Awaitable, Dict, Generic, Optional, TypeVar

from pydantic import BaseModel, Field

from coi_compliance.core.exceptions import AppError
from coi_compliance.utils.logging import get_logger

LOGGER = get_logger(__name__)

T = TypeVar("T")

INTERNAL_ERROR_MESSAGE = "An unexpected error occurred."


class OperationError(BaseModel):
    code: str
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)


class OperationResult(BaseModel, Generic[T]):
    ok: bool
    data: Optional[T] = None
    error: Optional[OperationError] = None


async def run_operation(operation: Awaitable[T]) -> OperationResult[T]:
    """Await ``operation`` and capture its outcome.

    Classified application errors keep their code, message and details.
    Unclassified ``AppError``s and anything else are logged and reported as
    ``internal_error`` without internals.
    """
    try:
        return OperationResult(ok=True, data=await operation)
    except AppError as e:
        if e.code == AppError.code:
            LOGGER.error(f"Unclassified error in operation: {e.message}", exc_info=True)
            return OperationResult(
                ok=False,
                error=OperationError(code=AppError.code, message=INTERNAL_ERROR_MESSAGE),
            )
        return OperationResult(
            ok=False,
            error=OperationError(code=e.code, message=e.message, details=e.details),
        )
    except Exception:
        LOGGER.error("Unhandled error in operation", exc_info=True)
        return OperationResult(
            ok=False,
            error=OperationError(code=AppError.code, message=INTERNAL_ERROR_MESSAGE),
        )
