from __future__ import annotations

from typing import Optional


class ConfigError(Exception):
    """Fatal build error. The message names the offending file and field."""

    def __init__(self, message: str, path: Optional[str] = None, field: Optional[str] = None) -> None:
        self.message = message
        self.path = path
        self.field = field
        super().__init__(str(self))

    def __str__(self) -> str:
        location = ""
        if self.path:
            location = self.path
            if self.field:
                location += f" [{self.field}]"
        elif self.field:
            location = f"[{self.field}]"
        return f"{location}: {self.message}" if location else self.message


class BrokenLinkWarning(UserWarning):
    def __init__(self, source: str, target: str) -> None:
        self.source = source
        self.target = target
        super().__init__(str(self))

    def __str__(self) -> str:
        return f"{self.source}: unresolved link to {self.target}"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, BrokenLinkWarning):
            return NotImplemented
        return (self.source, self.target) == (other.source, other.target)

    def __hash__(self) -> int:
        return hash((self.source, self.target))
