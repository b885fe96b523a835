from typing import Any, Awaitable, Callable, Optional, Type, TypeVar, Union

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from coi_compliance.core.exceptions import AppError, DatabaseError, ValidationError
from coi_compliance.utils.logging import get_logger

LOGGER = get_logger(__name__)

T = TypeVar("T")
M = TypeVar("M", bound=BaseModel)


class BaseService:
    """Base class for application services.

    Provides a standardized execution flow with validation and error
    classification: application errors pass through, database failures
    become ``DatabaseError`` and anything else becomes ``AppError``.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory
        self.logger = LOGGER

    async def execute(self, operation: Callable[..., Awaitable[T]], *args, **kwargs) -> T:
        """Run one service operation with standardized error handling.

        Raises:
            AppError: If execution fails
        """
        try:
            return await operation(*args, **kwargs)

        except AppError:
            raise

        except SQLAlchemyError as e:
            self.logger.error(
                f"Database error in {operation.__name__}: {str(e)}",
                exc_info=True,
                extra={"service": self.__class__.__name__},
            )
            raise DatabaseError("Database operation failed", original_error=e) from e

        except Exception as e:
            self.logger.error(
                f"Service execution failed: {str(e)}",
                exc_info=True,
                extra={"service": self.__class__.__name__},
            )
            raise AppError(f"Service execution failed: {str(e)}", original_error=e) from e

    @staticmethod
    def validate(model: Type[M], data: Union[M, dict, Any]) -> M:
        """Coerce raw input into ``model``.

        Raises:
            ValidationError: If input is invalid
        """
        if isinstance(data, model):
            return data
        try:
            return model.model_validate(data)
        except PydanticValidationError as e:
            first: Optional[dict] = e.errors()[0] if e.errors() else None
            location = ".".join(str(part) for part in first["loc"]) if first and first["loc"] else ""
            message = first["msg"] if first else str(e)
            raise ValidationError(
                f"{location}: {message}" if location else message, original_error=e
            ) from e
