"""Error types shared by the Google Sheets writer.

Two families matter to the caller: :class:`UserError` for problems the
operator can fix (bad configuration, missing sheets, API refusals) and
:class:`ApplicationError` for defects in the writer itself.  Both carry an
optional ``data`` mapping which is logged alongside the message.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional


class WriterError(Exception):
    """Base error raised by the writer."""

    exit_code = 2

    def __init__(self, message: str = "", data: Optional[Mapping[str, Any]] = None) -> None:
        super().__init__(message)
        self.data: Dict[str, Any] = dict(data or {})


class UserError(WriterError):
    """Raised when the run fails because of the configuration or remote state."""

    exit_code = 1


class ApplicationError(WriterError):
    """Raised when the writer reaches a state it should never be in."""

    def __init__(
        self,
        message: str = "",
        data: Optional[Mapping[str, Any]] = None,
        *,
        exit_code: int = 2,
    ) -> None:
        super().__init__(message, data)
        self.exit_code = max(2, exit_code)


class RemoteCallError(UserError):
    """Raised when a Google API call made while writing a sheet is rejected."""

    def __init__(self, message: str, *, status: int, reason: str, response: str) -> None:
        super().__init__(message, {"response": response, "reasonPhrase": reason})
        self.status = status
        self.reason = reason
        self.response = response


__all__ = [
    "ApplicationError",
    "RemoteCallError",
    "UserError",
    "WriterError",
]
