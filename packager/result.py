# ==========================================
# FAIL-OPEN TRANSFORMS: Result<T, E> Model
# ==========================================
from enum import Enum
from typing import Optional

from pydantic import BaseModel


class ErrorKind(str, Enum):
    """Categorizes recoverable transform failures."""
    FETCH_ERROR = "FetchError"
    READ_ERROR = "ReadError"
    MEDIA_TYPE_ERROR = "MediaTypeError"
    INLINE_ERROR = "InlineError"
    MINIFY_ERROR = "MinifyError"


class TransformError(BaseModel):
    """Context for a transform that fell back to its input."""
    kind: ErrorKind
    message: str
    details: Optional[str] = None
    source: Optional[str] = None

    def __str__(self):
        result = str(self.kind.value) + ": " + str(self.message)
        if self.source:
            result = result + chr(10) + "   Source: " + str(self.source)
        if self.details:
            result = result + chr(10) + "   Details: " + str(self.details)
        return result


class Result:
    """Base class for Result<T, E> (Ok or Err)."""

    def is_err(self) -> bool:
        return isinstance(self, Err)

    def unwrap_or(self, default):
        """Get value or return default."""
        if isinstance(self, Ok):
            return self.value
        else:
            return default


class Ok(Result):
    """Success case: Ok<T>."""

    def __init__(self, value):
        self.value = value


class Err(Result):
    """Error case: Err<E>."""

    def __init__(self, error):
        self.error = error

    def __str__(self):
        return str(self.error)
