"""
Error taxonomy for the assessment pipeline and the chat relay.

Missing vital signs are not errors: they travel through the report as
``MissingData`` sentinels. Only malformed input and relay failures raise.
"""

from typing import Any


class StructuralError(ValueError):
    """Malformed reading; the assessment aborts without a partial report."""


class UpstreamRelayError(RuntimeError):
    """Chat relay failure, carrying the upstream status and body for diagnostics."""

    def __init__(self, message: str, status_code: int = 500, detail: Any = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail if detail is not None else message
