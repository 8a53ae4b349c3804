from pydantic import BaseModel
from typing import Any, Optional


class ErrorDetail(BaseModel):
    kind: str
    message: str


class OperationResult(BaseModel):
    """Either a success payload or a typed failure, never both."""
    ok: bool
    data: Optional[Any] = None
    error: Optional[ErrorDetail] = None

    @classmethod
    def success(cls, data: Any = None) -> "OperationResult":
        return cls(ok=True, data=data)

    @classmethod
    def failure(cls, kind: str, message: str) -> "OperationResult":
        return cls(ok=False, error=ErrorDetail(kind=kind, message=message))
