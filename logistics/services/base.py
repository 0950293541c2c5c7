# logistics/services/base.py
import functools
import logging
from enum import Enum
from typing import Any, Callable, TypeVar

from sqlmodel import SQLModel

from logistics.core.events import ChangeEvent, ErrorOccurred, EventBus

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=SQLModel)


class FailureKind(str, Enum):
    VALIDATION = "VALIDATION"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    RULE = "RULE"
    STORAGE = "STORAGE"
    INTERNAL = "INTERNAL"


def storage_failure_kind(message: str) -> FailureKind:
    """Classify a repository failure message."""
    lowered = message.lower()
    if "not found" in lowered:
        return FailureKind.NOT_FOUND
    if "unique" in lowered or "duplicate" in lowered:
        return FailureKind.CONFLICT
    if lowered.startswith("invalid"):
        return FailureKind.VALIDATION
    return FailureKind.STORAGE


def service_boundary(default: Any = None):
    """
    Catch anything unexpected raised inside a service operation.

    The failure is logged with its traceback, published as ErrorOccurred,
    and the operation returns `default` (called first if it is callable,
    so `list` / `dict` give a fresh empty container).
    """

    def decorator(func: Callable):
        @functools.wraps(func)
        def wrapper(self: "BaseService", *args, **kwargs):
            try:
                return func(self, *args, **kwargs)
            except Exception as e:
                logger.exception(
                    "Unexpected failure in %s.%s", type(self).__name__, func.__name__
                )
                self._fail(f"Unexpected error: {e}", FailureKind.INTERNAL, log=False)
                return default() if callable(default) else default

        return wrapper

    return decorator


class BaseService:
    """
    Shared plumbing for the domain services.

    Responsibilities:
      - remember the last failure (message + kind) for callers
      - publish ErrorOccurred / change events on the injected bus
      - hand out copies so cached entities are never shared
    """

    source = "service"

    def __init__(self, events: EventBus | None = None):
        self.events = events if events is not None else EventBus()
        self.last_error: str = ""
        self.last_failure: FailureKind | None = None

    def _reset(self) -> None:
        self.last_error = ""
        self.last_failure = None

    def _fail(self, message: str, kind: FailureKind, log: bool = True) -> None:
        self.last_error = message
        self.last_failure = kind
        if log:
            logger.warning("%s: %s", self.source, message)
        self.events.publish(
            ErrorOccurred(source=self.source, message=message, kind=kind.value)
        )

    def _publish(self, event: ChangeEvent) -> None:
        self.events.publish(event)

    @staticmethod
    def _copy(entity: T) -> T:
        return type(entity).model_validate(entity.model_dump())

    @classmethod
    def _copies(cls, entities: list[T]) -> list[T]:
        return [cls._copy(entity) for entity in entities]
