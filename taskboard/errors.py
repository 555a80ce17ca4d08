from dataclasses import dataclass, field
from typing import Any, List, Optional

SUCCESS = "success"
VALIDATION_ERROR = "validation_error"
WRITE_ERROR = "write_error"


class WorkflowError(Exception):
    """Base das falhas que os fluxos de OS devolvem ao chamador."""


class ValidationFailure(WorkflowError):
    """Entrada rejeitada antes de qualquer escrita."""

    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code
        self.message = message


class WriteFailure(WorkflowError):
    """
    Uma escrita falhou no meio da sequência.
    As escritas anteriores já foram gravadas e NÃO são desfeitas.
    """

    def __init__(self, step: str, cause: Exception, completed: Optional[List[str]] = None):
        super().__init__(f"{step} failed: {cause}")
        self.step = step
        self.cause = cause
        self.completed = list(completed or [])


@dataclass
class WorkflowResult:
    ok: bool
    kind: str
    message: str = ""
    value: Any = None
    completed: List[str] = field(default_factory=list)

    @classmethod
    def success(cls, value: Any = None, message: str = "", completed: Optional[List[str]] = None):
        return cls(ok=True, kind=SUCCESS, message=message, value=value, completed=list(completed or []))

    @classmethod
    def from_error(cls, error: WorkflowError):
        if isinstance(error, ValidationFailure):
            return cls(ok=False, kind=VALIDATION_ERROR, message=error.message, value=error.code)
        if isinstance(error, WriteFailure):
            return cls(ok=False, kind=WRITE_ERROR, message=str(error), value=error.step, completed=error.completed)
        return cls(ok=False, kind=WRITE_ERROR, message=str(error))

    def to_dict(self) -> dict:
        return {
            "ok": self.ok,
            "kind": self.kind,
            "message": self.message,
            "value": self.value,
            "completed": self.completed,
        }
