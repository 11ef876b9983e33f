"""User-facing outcome of a list or mutation call (success, error or info)."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class NoticeKind(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
    INFO = "info"


@dataclass(frozen=True)
class Notice:
    kind: NoticeKind
    message: str

    @classmethod
    def success(cls, message: str) -> "Notice":
        return cls(NoticeKind.SUCCESS, message)

    @classmethod
    def error(cls, message: str) -> "Notice":
        return cls(NoticeKind.ERROR, message)

    @classmethod
    def info(cls, message: str) -> "Notice":
        return cls(NoticeKind.INFO, message)

    @property
    def is_error(self) -> bool:
        return self.kind is NoticeKind.ERROR


__all__ = ["Notice", "NoticeKind"]
