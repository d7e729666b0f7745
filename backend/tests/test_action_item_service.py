import uuid
from datetime import datetime, timedelta, timezone

import pytest
from sqlmodel import Session, create_engine

from ssdi_tracker import models, repositories, services
from ssdi_tracker.database import create_db_and_tables, session_factory
from ssdi_tracker.errors import StoreUnavailable

NOW = datetime(2024, 3, 5, 12, 0, tzinfo=timezone.utc)


@pytest.fixture()
def seeded():
    """Two users; the second owns rows that must never leak into the first's view."""
    create_db_and_tables()
    with session_factory() as session:
        users = repositories.UserRepository(session)
        owner = users.create(models.User(username=f"owner-{uuid.uuid4().hex[:8]}", password_hash="x"))
        other = users.create(models.User(username=f"other-{uuid.uuid4().hex[:8]}", password_hash="x"))
        sections = repositories.SectionRepository(session)
        docs = repositories.DocumentRepository(session)
        tracking = repositories.TrackingRepository(session)

        medical = sections.create(models.Section(user_id=owner.id, name="Medical Evidence", order=1))
        foreign = sections.create(models.Section(user_id=other.id, name="Foreign", order=1))
        docs.create(models.Document(section_id=medical.id, user_id=owner.id, name="Specialist Reports",
                                    status="missing", category="medical"))
        docs.create(models.Document(section_id=medical.id, user_id=owner.id, name="Physician Records",
                                    status="uploaded", uploaded_at=NOW - timedelta(days=2), category="medical"))
        docs.create(models.Document(section_id=medical.id, user_id=owner.id, name="Old X-Rays",
                                    status="uploaded", uploaded_at=NOW - timedelta(days=9), category="medical"))
        docs.create(models.Document(section_id=foreign.id, user_id=other.id, name="Not Mine",
                                    status="missing", category="medical"))

        def entry(user_id, title, **kw):
            return tracking.create(models.TrackingEntry(
                user_id=user_id, type="letter", title=title, description="d",
                received_at=NOW - timedelta(days=20), source="mail", priority="high", **kw,
            ))

        entry(owner.id, "Send W-2 forms", is_action_required=True, action_deadline=datetime(2024, 3, 1, tzinfo=timezone.utc))
        entry(owner.id, "Exam", is_action_required=True, action_deadline=datetime(2024, 3, 15, tzinfo=timezone.utc))
        entry(owner.id, "Recently mailed", is_action_required=False, action_completed_at=NOW - timedelta(days=1))
        entry(owner.id, "Long done", is_action_required=False, action_completed_at=NOW - timedelta(days=8))
        entry(other.id, "Other user's task", is_action_required=True)
        return owner.id, other.id


def test_aggregates_user_rows_with_pinned_clock(seeded):
    owner_id, _ = seeded
    view = services.ActionItemService(session_factory, clock=lambda: NOW).get_action_items(owner_id)

    titles = [i.title for i in view.needs_attention]
    assert titles == ["Send W-2 forms", "Exam", "Specialist Reports"]
    assert view.needs_attention[0].is_overdue is True
    assert [i.is_overdue for i in view.needs_attention[1:]] == [False, False]

    assert [i.title for i in view.completed] == ["Recently mailed", "Physician Records"]


def test_items_past_recency_window_are_not_listed(seeded):
    owner_id, _ = seeded
    view = services.ActionItemService(session_factory, clock=lambda: NOW).get_action_items(owner_id)
    listed = {i.title for i in view.needs_attention} | {i.title for i in view.completed}
    assert "Long done" not in listed
    assert "Old X-Rays" not in listed


def test_other_users_rows_never_appear(seeded):
    owner_id, other_id = seeded
    view = services.ActionItemService(session_factory, clock=lambda: NOW).get_action_items(owner_id)
    listed = {i.title for i in view.needs_attention} | {i.title for i in view.completed}
    assert "Not Mine" not in listed
    assert "Other user's task" not in listed

    other_view = services.ActionItemService(session_factory, clock=lambda: NOW).get_action_items(other_id)
    assert [i.title for i in other_view.needs_attention] == ["Not Mine", "Other user's task"]
    assert other_view.completed == []


def test_completed_entry_moves_between_buckets_over_time(seeded):
    owner_id, _ = seeded
    with session_factory() as session:
        open_entries = repositories.TrackingRepository(session).list_open_actions(owner_id)
        exam = next(e for e in open_entries if e.title == "Exam")
        services.TrackingService(session, clock=lambda: NOW).mark_complete(exam.id, owner_id)

    at_completion = services.ActionItemService(session_factory, clock=lambda: NOW).get_action_items(owner_id)
    assert "Exam" not in [i.title for i in at_completion.needs_attention]
    assert at_completion.completed[0].title == "Exam"

    later = NOW + timedelta(days=7, seconds=1)
    after_window = services.ActionItemService(session_factory, clock=lambda: later).get_action_items(owner_id)
    assert "Exam" not in [i.title for i in after_window.needs_attention]
    assert "Exam" not in [i.title for i in after_window.completed]


def test_unreachable_store_raises_store_unavailable(tmp_path):
    broken = create_engine(f"sqlite:///{tmp_path / 'missing-dir' / 'nope.db'}")
    svc = services.ActionItemService(lambda: Session(broken), clock=lambda: NOW)
    with pytest.raises(StoreUnavailable):
        svc.get_action_items(1)
