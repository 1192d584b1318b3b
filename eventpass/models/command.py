from pydantic import BaseModel
from typing import Any, Dict, Generic, Optional, TypeVar

T = TypeVar("T")


class CommandErrorBody(BaseModel):
    """Error half of a command result"""
    code: str
    message: str
    details: Dict[str, Any] = {}
    kind: str


class CommandResult(BaseModel, Generic[T]):
    """Discriminated result returned by every ticketing command"""
    success: bool
    data: Optional[T] = None
    error: Optional[CommandErrorBody] = None

    @classmethod
    def ok(cls, data: T) -> "CommandResult[T]":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: Dict[str, Any]) -> "CommandResult[T]":
        return cls(success=False, error=CommandErrorBody(**error))
