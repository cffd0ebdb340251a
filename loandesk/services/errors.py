from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class ChecklistError(ValueError):
    code: str
    message: str
    details: dict = field(default_factory=dict)

    status_code = 400

    def __str__(self) -> str:
        return self.message


class ChecklistLockedError(ChecklistError):
    """The loan has no product selected; its checklist is read-only."""

    status_code = 409


class NoBorrowersError(ChecklistError):
    status_code = 422


class InvalidStatusError(ChecklistError):
    pass


class ChecklistTypeError(ChecklistError):
    pass


class ReviewGateError(ChecklistError):
    status_code = 409


class CommentNotFoundError(ChecklistError):
    status_code = 404


class FileNotFoundOnItemError(ChecklistError):
    status_code = 404


class ChecklistItemNotFoundError(ChecklistError):
    status_code = 404
