"""
Error taxonomy for the task priority engine.

Two families of failure exist:

- Strict boundary checks (importance, complexity, reorder indices) raise and
  are mapped to a client-facing rejection by the API layer.
- Malformed dates are absorbed where they are read: the task degrades to
  "no date" and the batch carries on.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional


class ErrorCode(Enum):
    """Error codes used in API responses."""
    SUCCESS = "SUCCESS"
    ERR_MISSING_FIELD = "ERR_MISSING_FIELD"
    ERR_OUT_OF_RANGE = "ERR_OUT_OF_RANGE"
    ERR_INVALID_DATE = "ERR_INVALID_DATE"
    ERR_INVALID_MOVE = "ERR_INVALID_MOVE"
    ERR_EMPTY_TASKS = "ERR_EMPTY_TASKS"


class PriorityEngineError(Exception):
    """Base class for errors raised by the engine."""

    code = ErrorCode.ERR_MISSING_FIELD

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.field = field

    def to_dict(self) -> Dict:
        result = {
            'error_code': self.code.value,
            'message': self.message
        }
        if self.field:
            result['field'] = self.field
        return result


class OutOfRangeInput(PriorityEngineError, ValueError):
    """Importance or complexity outside its closed integer interval."""
    code = ErrorCode.ERR_OUT_OF_RANGE


class MalformedDate(PriorityEngineError, ValueError):
    """A date input that cannot be parsed."""
    code = ErrorCode.ERR_INVALID_DATE


class InvalidMove(PriorityEngineError, IndexError):
    """A reorder request whose indices do not address the sibling list."""
    code = ErrorCode.ERR_INVALID_MOVE


@dataclass
class ValidationError:
    """Structured validation error with code and details."""
    code: ErrorCode
    message: str
    field: Optional[str] = None
    task_id: Optional[int] = None

    def to_dict(self) -> Dict:
        result = {
            'error_code': self.code.value,
            'message': self.message
        }
        if self.field:
            result['field'] = self.field
        if self.task_id is not None:
            result['task_id'] = self.task_id
        return result
