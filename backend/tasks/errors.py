"""
Error types raised by the task store and service.

Every error carries an ``ErrorCode`` so the HTML views and the JSON API
can report it consistently.
"""

from enum import Enum
from typing import Any, Dict, List, Optional


class ErrorCode(Enum):
    """Error codes for API responses."""
    SUCCESS = "SUCCESS"
    ERR_VALIDATION = "ERR_VALIDATION"
    ERR_NOT_FOUND = "ERR_NOT_FOUND"
    ERR_IMPORT = "ERR_IMPORT"
    ERR_STORE = "ERR_STORE"


class TaskError(Exception):
    """Base class for all task errors."""

    code = ErrorCode.ERR_STORE

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict:
        return {
            'success': False,
            'error_code': self.code.value,
            'message': self.message,
        }


class TaskValidationError(TaskError):
    """
    A draft failed validation.

    ``errors`` maps field names to lists of messages; ``data`` is the
    original input so it can be shown again in the form.
    """

    code = ErrorCode.ERR_VALIDATION

    def __init__(self, errors: Dict[str, List[str]], data: Optional[Any] = None):
        super().__init__("Please correct the form errors")
        self.errors = errors
        self.data = data

    def to_dict(self) -> Dict:
        result = super().to_dict()
        result['errors'] = self.errors
        return result


class TaskNotFound(TaskError):
    """The referenced task id does not exist."""

    code = ErrorCode.ERR_NOT_FOUND

    def __init__(self, task_id: Any):
        super().__init__(f"Task not found with ID: {task_id}")
        self.task_id = task_id


class TaskImportError(TaskError):
    """An import document could not be parsed or did not match the task schema."""

    code = ErrorCode.ERR_IMPORT

    def __init__(self, message: str, errors: Optional[Dict] = None):
        super().__init__(message)
        self.errors = errors or {}

    def to_dict(self) -> Dict:
        result = super().to_dict()
        if self.errors:
            result['errors'] = self.errors
        return result


class StoreError(TaskError):
    """
    The database rejected an operation.

    ``processed`` counts the rows a bulk operation had already written
    before the failure.
    """

    code = ErrorCode.ERR_STORE

    def __init__(self, message: str, processed: int = 0):
        super().__init__(message)
        self.processed = processed

    def to_dict(self) -> Dict:
        result = super().to_dict()
        result['processed'] = self.processed
        return result
