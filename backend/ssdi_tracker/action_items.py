"""Action-item classification and prioritization.

The dashboard shows two lists: what is blocking the application right
now (`needs_attention`) and what was resolved recently (`completed`).
Both are derived from documents and tracking entries on every request;
nothing here is persisted.

Each kind of action item is its own frozen dataclass carrying only the
fields that make sense for it, and `ActionItem` is the union of the four.
The functions in this module are pure: they take rows already loaded
from the store plus the current time and return ordered items, so the
rules can be exercised without a database.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, List, Optional, Sequence, Tuple, Union

from . import models
from .utils.clock import as_utc

RECENT_COMPLETION_WINDOW = timedelta(days=7)

MISSING_DOCUMENT = "missing_document"
REQUIRED_ACTION = "required_action"
COMPLETED_DOCUMENT = "completed_document"
COMPLETED_ACTION = "completed_action"


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


@dataclass(frozen=True)
class MissingDocumentItem:
    """A document the applicant still has to provide. Never has a deadline."""
    id: int
    title: str
    section_id: int
    section_name: str
    type: str = MISSING_DOCUMENT

    @property
    def deadline(self) -> Optional[datetime]:
        return None

    @property
    def is_overdue(self) -> bool:
        return False

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "id": self.id,
            "title": self.title,
            "description": self.section_name,
            "sectionId": self.section_id,
            "sectionName": self.section_name,
            "deadline": None,
            "isOverdue": False,
        }


@dataclass(frozen=True)
class RequiredActionItem:
    """An SSA communication that asks the applicant to do something."""
    id: int
    title: str
    description: str
    deadline: Optional[datetime]
    is_overdue: bool
    type: str = REQUIRED_ACTION

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "deadline": _iso(self.deadline),
            "isOverdue": self.is_overdue,
        }


@dataclass(frozen=True)
class CompletedDocumentItem:
    """A document uploaded within the recency window."""
    id: int
    title: str
    completed_at: datetime
    type: str = COMPLETED_DOCUMENT

    def to_dict(self) -> dict:
        return {"type": self.type, "id": self.id, "title": self.title, "completedAt": _iso(self.completed_at)}


@dataclass(frozen=True)
class CompletedActionItem:
    """A required action marked complete within the recency window."""
    id: int
    title: str
    completed_at: datetime
    type: str = COMPLETED_ACTION

    def to_dict(self) -> dict:
        return {"type": self.type, "id": self.id, "title": self.title, "completedAt": _iso(self.completed_at)}


AttentionItem = Union[MissingDocumentItem, RequiredActionItem]
CompletedItem = Union[CompletedDocumentItem, CompletedActionItem]
ActionItem = Union[MissingDocumentItem, RequiredActionItem, CompletedDocumentItem, CompletedActionItem]


@dataclass(frozen=True)
class ActionItems:
    """The combined dashboard view returned by the aggregator."""
    needs_attention: List[AttentionItem]
    completed: List[CompletedItem]

    def to_dict(self) -> dict:
        return {
            "needsAttention": [item.to_dict() for item in self.needs_attention],
            "completed": [item.to_dict() for item in self.completed],
        }


def recency_cutoff(now: datetime) -> datetime:
    """Completion timestamps must be strictly after this to count as recent."""
    return as_utc(now) - RECENT_COMPLETION_WINDOW


def missing_document_items(rows: Iterable[Tuple[models.Document, str]]) -> List[MissingDocumentItem]:
    """Build items from `(document, section name)` pairs of missing documents."""
    return [
        MissingDocumentItem(id=doc.id, title=doc.name, section_id=doc.section_id, section_name=section_name)
        for doc, section_name in rows
    ]


def required_action_items(entries: Iterable[models.TrackingEntry], now: datetime) -> List[RequiredActionItem]:
    """Build items from open tracking entries; overdue means the deadline has passed."""
    now = as_utc(now)
    items = []
    for entry in entries:
        deadline = as_utc(entry.action_deadline)
        items.append(RequiredActionItem(
            id=entry.id,
            title=entry.title,
            description=entry.description,
            deadline=deadline,
            is_overdue=deadline < now if deadline is not None else False,
        ))
    return items


def completed_document_items(documents: Iterable[models.Document]) -> List[CompletedDocumentItem]:
    return [
        CompletedDocumentItem(id=doc.id, title=doc.name, completed_at=as_utc(doc.uploaded_at))
        for doc in documents
        if doc.uploaded_at is not None
    ]


def completed_action_items(entries: Iterable[models.TrackingEntry]) -> List[CompletedActionItem]:
    return [
        CompletedActionItem(id=entry.id, title=entry.title, completed_at=as_utc(entry.action_completed_at))
        for entry in entries
        if entry.action_completed_at is not None
    ]


def urgency_key(item: AttentionItem) -> tuple:
    """Sort key: overdue first, then dated before undated, then soonest deadline."""
    deadline = item.deadline
    return (
        not item.is_overdue,
        deadline is None,
        deadline.timestamp() if deadline is not None else 0.0,
    )


def prioritize(items: Sequence[AttentionItem]) -> List[AttentionItem]:
    """Order items needing attention by urgency.

    `sorted` is stable, so items the key cannot tell apart keep the order
    in which they were passed in.
    """
    return sorted(items, key=urgency_key)


def most_recent_first(items: Sequence[CompletedItem]) -> List[CompletedItem]:
    return sorted(
        (item for item in items if item.completed_at is not None),
        key=lambda item: item.completed_at,
        reverse=True,
    )


def build_action_items(
    missing_rows: Iterable[Tuple[models.Document, str]],
    open_entries: Iterable[models.TrackingEntry],
    uploaded_documents: Iterable[models.Document],
    completed_entries: Iterable[models.TrackingEntry],
    now: datetime,
) -> ActionItems:
    """Classify and order the four source reads into the dashboard view.

    Missing documents come before required actions in the source order, so
    among equally urgent undated items missing documents are listed first.
    """
    needs_attention = prioritize(missing_document_items(missing_rows) + required_action_items(open_entries, now))
    completed = most_recent_first(completed_document_items(uploaded_documents) + completed_action_items(completed_entries))
    return ActionItems(needs_attention=needs_attention, completed=completed)
