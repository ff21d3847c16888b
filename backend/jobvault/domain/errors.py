from __future__ import annotations

from .enums import SnapshotErrorCode


class SnapshotError(Exception):
    """Failure of a snapshot operation, tagged with one of `SnapshotErrorCode`."""

    def __init__(self, code: SnapshotErrorCode, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"

    def __repr__(self) -> str:
        return f"<SnapshotError(code='{self.code.value}', message='{self.message}')>"
