from contextlib import AbstractContextManager
from enum import Enum
from logging import Logger
from typing import Any, List, Optional

from attrs import define

from tflib.errors import ProviderError


class Severity(Enum):
    error = "error"
    warning = "warning"


@define(frozen=True)
class Diagnostic:
    severity: Severity
    summary: str
    detail: Optional[str] = None
    attribute: Optional[str] = None


class Diagnostics(List[Diagnostic]):
    """
    Result of a provider operation as handed back to the host.
    An operation failed, if at least one diagnostic has severity error.
    """

    def append_error(self, summary: str, detail: Optional[str] = None, attribute: Optional[str] = None) -> None:
        self.append(Diagnostic(Severity.error, summary, detail, attribute))

    def append_warning(self, summary: str, detail: Optional[str] = None, attribute: Optional[str] = None) -> None:
        self.append(Diagnostic(Severity.warning, summary, detail, attribute))

    def errors(self) -> List[Diagnostic]:
        return [d for d in self if d.severity == Severity.error]

    def has_error(self) -> bool:
        return any(d.severity == Severity.error for d in self)

    def suppress(self, message: str, logger: Optional[Logger] = None) -> "SuppressWithDiagnostics":
        return SuppressWithDiagnostics(message, self, logger)


class SuppressWithDiagnostics(AbstractContextManager):  # type: ignore
    """
    Turn any exception raised in the managed block into an error diagnostic.
    A ProviderError already carries its context, all other errors are prefixed with the given message.
    """

    def __init__(self, message: str, diagnostics: Diagnostics, logger: Optional[Logger] = None) -> None:
        self.message = message
        self.diagnostics = diagnostics
        self.logger = logger

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> Optional[bool]:
        if exc_type is None or not issubclass(exc_type, Exception):
            return None
        if isinstance(exc_val, ProviderError):
            summary = str(exc_val)
            if self.logger:
                self.logger.debug(f"{self.message}: {summary}")
        else:
            summary = f"{self.message}: {exc_val}"
            if self.logger:
                self.logger.warning(summary, exc_info=exc_val)
        self.diagnostics.append_error(summary)
        return True  # suppress exception
