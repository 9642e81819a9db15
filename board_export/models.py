"""
Data model for a board export.

Groups and worklist entries are built once during enumeration and never
mutated; task and comment records are produced once per worklist entry.
The ``to_dict()`` methods emit the export document's JSON field names.
"""

from dataclasses import dataclass, field
from typing import Any

KIND_COMMENT = "comment"
KIND_STORY   = "story"


@dataclass(frozen=True)
class Card:
    """One materialized card on the board and the surface that opens it."""
    item_id: str
    handle: Any = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class Group:
    """A board column: its display name and the cards read from it."""
    name: str
    cards: tuple = ()

    @property
    def item_ids(self) -> tuple:
        return tuple(card.item_id for card in self.cards)


@dataclass(frozen=True)
class WorklistEntry:
    item_id: str
    first_group_name: str
    activation_handle: Any = field(default=None, compare=False, repr=False)
    group_index: int = 0


@dataclass(frozen=True)
class CommentRecord:
    kind: str
    text: str
    author: str | None = None
    created: str | None = None

    @classmethod
    def classify(cls, text: str, author: str | None, created: str | None) -> "CommentRecord":
        """Build a record, marking it a comment only when it has both an author and text."""
        kind = KIND_COMMENT if author and text else KIND_STORY
        return cls(kind=kind, text=text, author=author, created=created)

    def to_dict(self) -> dict:
        return {
            "type": self.kind,
            "text": self.text,
            "author": self.author,
            "created": self.created,
        }


@dataclass(frozen=True)
class TaskRecord:
    item_id: str
    title: str
    permalink: str
    comments: tuple = ()

    def to_dict(self) -> dict:
        return {
            "task_gid": self.item_id,
            "title": self.title,
            "permalink_url": self.permalink,
            "comments": [c.to_dict() for c in self.comments],
        }


@dataclass
class GroupExport:
    group_name: str
    tasks: list = field(default_factory=list)

    @property
    def task_count(self) -> int:
        return len(self.tasks)

    def to_dict(self) -> dict:
        return {
            "group_name": self.group_name,
            "task_count": self.task_count,
            "tasks": [t.to_dict() for t in self.tasks],
        }


@dataclass
class ExportDocument:
    exported_at: str
    source_url: str
    groups: list = field(default_factory=list)
    tasks_attempted: int = 0
    tasks_failed: int = 0

    @property
    def task_total(self) -> int:
        return sum(g.task_count for g in self.groups)

    def to_dict(self) -> dict:
        return {
            "exported_at": self.exported_at,
            "source_url": self.source_url,
            "tasks_attempted": self.tasks_attempted,
            "tasks_failed": self.tasks_failed,
            "groups": [g.to_dict() for g in self.groups],
        }
