"""
Fetch session state — the progress of the one fetch cycle allowed at a time.

``progress`` is ``None`` while idle and ``0..100`` while a fetch is active;
it doubles as the "fetch in flight" guard.  A failed fetch leaves its error
code and message behind for the UI until the next fetch resets them.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator


class FetchSession(BaseModel):
    """Mutable state of the current (or last) recommendation fetch.

    Attributes:
        request_id: Opaque token the backend returned for the project selection.
        progress: Percentage of batches processed, ``None`` when idle.
        error_code: HTTP status of the last failure, if any.
        error_message: Description of the last failure, if any.
    """

    model_config = ConfigDict(frozen=False, validate_assignment=True)

    request_id: Optional[str] = None
    progress: Optional[int] = None
    error_code: Optional[int] = None
    error_message: Optional[str] = None

    @field_validator("progress")
    @classmethod
    def validate_progress(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and not 0 <= v <= 100:
            raise ValueError(f"progress must be in [0, 100], got {v}.")
        return v

    @property
    def active(self) -> bool:
        return self.progress is not None

    @property
    def failed(self) -> bool:
        return self.error_code is not None

    def begin(self) -> None:
        """Reset for a new fetch and mark it active."""
        self.request_id = None
        self.error_code = None
        self.error_message = None
        self.progress = 0

    def fail(self, code: int, message: str) -> None:
        """Record a reported failure and end the session."""
        self.error_code = code
        self.error_message = message
        self.progress = None

    def end(self) -> None:
        self.progress = None
