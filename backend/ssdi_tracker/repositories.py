"""Repository classes encapsulating database operations.

Each repository is small and focused on a single aggregate (users,
sections, documents, tracking entries, contacts, integrations).
Repositories return SQLModel objects and perform commits/refreshes where
appropriate. Ownership filters live here so that a query never returns
another user's rows.
"""

from datetime import datetime
from typing import List, Optional, Tuple
from sqlmodel import Session, select
from . import models


class UserRepository:
    """CRUD operations for `User` objects."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, user: models.User) -> models.User:
        """Persist a new user and return the managed instance."""
        self.session.add(user)
        self.session.commit()
        self.session.refresh(user)
        return user

    def get_by_username(self, username: str) -> Optional[models.User]:
        """Return a `User` by username or `None` if not found."""
        stmt = select(models.User).where(models.User.username == username)
        return self.session.exec(stmt).first()

    def get(self, user_id: int) -> Optional[models.User]:
        """Get a `User` by primary key."""
        return self.session.get(models.User, user_id)


class SectionRepository:
    """CRUD operations for `Section` records."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, section: models.Section) -> models.Section:
        self.session.add(section)
        self.session.commit()
        self.session.refresh(section)
        return section

    def list_for_user(self, user_id: int) -> List[models.Section]:
        """Return the user's sections in display order."""
        stmt = select(models.Section).where(models.Section.user_id == user_id).order_by(models.Section.order, models.Section.id)
        return self.session.exec(stmt).all()

    def get_owned(self, section_id: int, user_id: int) -> Optional[models.Section]:
        """Fetch a section only if it belongs to `user_id`."""
        section = self.session.get(models.Section, section_id)
        if not section or section.user_id != user_id:
            return None
        return section

    def save(self, section: models.Section) -> models.Section:
        self.session.add(section)
        self.session.commit()
        self.session.refresh(section)
        return section


class DocumentRepository:
    """Document queries, including the reads behind the action-item view."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, document: models.Document) -> models.Document:
        self.session.add(document)
        self.session.commit()
        self.session.refresh(document)
        return document

    def save(self, document: models.Document) -> models.Document:
        self.session.add(document)
        self.session.commit()
        self.session.refresh(document)
        return document

    def delete(self, document: models.Document) -> None:
        self.session.delete(document)
        self.session.commit()

    def list_for_section(self, section_id: int) -> List[models.Document]:
        stmt = select(models.Document).where(models.Document.section_id == section_id).order_by(models.Document.id)
        return self.session.exec(stmt).all()

    def get_owned(self, document_id: int, user_id: int) -> Optional[models.Document]:
        """Fetch a document whose section is owned by `user_id`."""
        stmt = (
            select(models.Document)
            .join(models.Section, models.Document.section_id == models.Section.id)
            .where(models.Document.id == document_id, models.Section.user_id == user_id)
        )
        return self.session.exec(stmt).first()

    def get_owned_by_file_name(self, file_name: str, user_id: int) -> Optional[models.Document]:
        stmt = (
            select(models.Document)
            .join(models.Section, models.Document.section_id == models.Section.id)
            .where(models.Document.file_name == file_name, models.Section.user_id == user_id)
        )
        return self.session.exec(stmt).first()

    def list_missing_for_user(self, user_id: int) -> List[Tuple[models.Document, str]]:
        """Return `(document, section name)` pairs for the user's missing documents."""
        stmt = (
            select(models.Document, models.Section.name)
            .join(models.Section, models.Document.section_id == models.Section.id)
            .where(models.Document.status == 'missing', models.Section.user_id == user_id)
            .order_by(models.Document.id)
        )
        return self.session.exec(stmt).all()

    def list_uploaded_since(self, user_id: int, cutoff: datetime) -> List[models.Document]:
        """Return the user's documents uploaded strictly after `cutoff`."""
        stmt = (
            select(models.Document)
            .join(models.Section, models.Document.section_id == models.Section.id)
            .where(
                models.Document.status == 'uploaded',
                models.Section.user_id == user_id,
                models.Document.uploaded_at.is_not(None),
                models.Document.uploaded_at > cutoff,
            )
            .order_by(models.Document.id)
        )
        return self.session.exec(stmt).all()


class TrackingRepository:
    """Queries and updates for `TrackingEntry` records."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, entry: models.TrackingEntry) -> models.TrackingEntry:
        self.session.add(entry)
        self.session.commit()
        self.session.refresh(entry)
        return entry

    def save(self, entry: models.TrackingEntry) -> models.TrackingEntry:
        self.session.add(entry)
        self.session.commit()
        self.session.refresh(entry)
        return entry

    def delete(self, entry: models.TrackingEntry) -> None:
        self.session.delete(entry)
        self.session.commit()

    def get_owned(self, entry_id: int, user_id: int) -> Optional[models.TrackingEntry]:
        """Fetch an entry only if it belongs to `user_id`."""
        entry = self.session.get(models.TrackingEntry, entry_id)
        if not entry or entry.user_id != user_id:
            return None
        return entry

    def get_owned_by_attachment(self, file_name: str, user_id: int) -> Optional[models.TrackingEntry]:
        stmt = select(models.TrackingEntry).where(
            models.TrackingEntry.attachment_file_name == file_name,
            models.TrackingEntry.user_id == user_id,
        )
        return self.session.exec(stmt).first()

    def list_for_user(self, user_id: int) -> List[models.TrackingEntry]:
        """Return all entries of a user, most recently received first."""
        stmt = select(models.TrackingEntry).where(models.TrackingEntry.user_id == user_id).order_by(models.TrackingEntry.received_at.desc())
        return self.session.exec(stmt).all()

    def list_open_actions(self, user_id: int) -> List[models.TrackingEntry]:
        """Return entries that still require action from the user."""
        stmt = (
            select(models.TrackingEntry)
            .where(
                models.TrackingEntry.user_id == user_id,
                models.TrackingEntry.is_action_required == True,  # noqa: E712
                models.TrackingEntry.action_completed_at.is_(None),
            )
            .order_by(models.TrackingEntry.id)
        )
        return self.session.exec(stmt).all()

    def list_completed_since(self, user_id: int, cutoff: datetime) -> List[models.TrackingEntry]:
        """Return entries whose action was completed strictly after `cutoff`."""
        stmt = (
            select(models.TrackingEntry)
            .where(
                models.TrackingEntry.user_id == user_id,
                models.TrackingEntry.action_completed_at.is_not(None),
                models.TrackingEntry.action_completed_at > cutoff,
            )
            .order_by(models.TrackingEntry.id)
        )
        return self.session.exec(stmt).all()


class ContactRepository:
    """CRUD operations for `Contact` records."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, contact: models.Contact) -> models.Contact:
        self.session.add(contact)
        self.session.commit()
        self.session.refresh(contact)
        return contact

    def save(self, contact: models.Contact) -> models.Contact:
        self.session.add(contact)
        self.session.commit()
        self.session.refresh(contact)
        return contact

    def delete(self, contact: models.Contact) -> None:
        self.session.delete(contact)
        self.session.commit()

    def get_owned(self, contact_id: int, user_id: int) -> Optional[models.Contact]:
        contact = self.session.get(models.Contact, contact_id)
        if not contact or contact.user_id != user_id:
            return None
        return contact

    def list_for_user(self, user_id: int) -> List[models.Contact]:
        """Return the user's contacts, newest first."""
        stmt = select(models.Contact).where(models.Contact.user_id == user_id).order_by(models.Contact.created_at.desc(), models.Contact.id.desc())
        return self.session.exec(stmt).all()


class IntegrationRepository:
    """Repository for the per-user Google integration upserts and queries."""
    def __init__(self, session: Session):
        self.session = session

    def get_for_user(self, user_id: int) -> Optional[models.GoogleIntegration]:
        stmt = select(models.GoogleIntegration).where(models.GoogleIntegration.user_id == user_id)
        return self.session.exec(stmt).first()

    def upsert(self, integration: models.GoogleIntegration) -> models.GoogleIntegration:
        """Insert or replace the integration of `integration.user_id`."""
        existing = self.get_for_user(integration.user_id)
        if existing:
            existing.email = integration.email
            existing.access_token = integration.access_token
            existing.expiry_date = integration.expiry_date
            existing.scopes = integration.scopes
            self.session.add(existing)
            self.session.commit()
            self.session.refresh(existing)
            return existing
        self.session.add(integration)
        self.session.commit()
        self.session.refresh(integration)
        return integration

    def delete_for_user(self, user_id: int) -> bool:
        existing = self.get_for_user(user_id)
        if not existing:
            return False
        self.session.delete(existing)
        self.session.commit()
        return True
