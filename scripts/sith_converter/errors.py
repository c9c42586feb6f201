from __future__ import annotations

from pathlib import Path
from typing import Optional, Union


class SithParseError(Exception):
    """Raised when a legacy asset is structurally unreadable.

    Carries the offending file and, for text formats, the line the cursor
    was on when parsing stopped.
    """

    def __init__(
        self,
        message: str,
        path: Optional[Union[str, Path]] = None,
        line: Optional[int] = None,
    ) -> None:
        self.message = message
        self.path = Path(path) if path is not None else None
        self.line = line
        super().__init__(self._format())

    def _format(self) -> str:
        if self.path is None:
            return self.message
        if self.line is None:
            return f"{self.path}: {self.message}"
        return f"{self.path}:{self.line}: {self.message}"

    def with_context(
        self,
        path: Union[str, Path],
        line: Optional[int] = None,
    ) -> "SithParseError":
        """Return a copy of this error attached to *path* (keeps an existing line)."""
        return SithParseError(
            self.message,
            path=path,
            line=self.line if self.line is not None else line,
        )
