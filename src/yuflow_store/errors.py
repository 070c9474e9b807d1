"""Error taxonomy shared by the store, the backup manager and the MCP tools.

Every error carries a message that can be shown to a user as-is; the command
surface forwards ``str(exc)`` without further formatting.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional


class YuflowError(Exception):
    """Base class for all errors raised by the persistence core."""


@dataclass(frozen=True)
class FieldError:
    field: str
    rule: str
    message: str

    def __str__(self) -> str:
        return f"{self.field}: {self.message}"


class ValidationFailed(YuflowError, ValueError):
    def __init__(self, errors: List[FieldError]) -> None:
        self.errors = list(errors)
        super().__init__("Validation failed: " + "; ".join(str(e) for e in self.errors))

    @property
    def fields(self) -> List[str]:
        return [e.field for e in self.errors]


class NotFound(YuflowError, LookupError):
    def __init__(self, entity: str, identifier: object) -> None:
        self.entity = entity
        self.identifier = identifier
        super().__init__(f"{entity.capitalize()} {identifier} not found")


class StoreFailure(YuflowError, RuntimeError):
    """The database rejected or failed an operation. Never retried."""


class BackupIoFailure(YuflowError, RuntimeError):
    def __init__(self, message: str, filename: Optional[str] = None) -> None:
        self.filename = filename
        super().__init__(message)
