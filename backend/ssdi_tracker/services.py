"""Business logic services used by HTTP controllers.

This module holds small service classes that coordinate repositories
and auxiliary logic. Services are intentionally thin: they perform
validation, execute domain logic and persist aggregates via
repositories. Ownership failures surface as `NotFoundOrForbidden` and
bad input as `ValidationFailure`; controllers map those to HTTP codes.
"""

from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta
import logging
from passlib.context import CryptContext
import jwt
from typing import Callable, Dict, List, Optional
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session
from . import models, repositories
from .action_items import ActionItems, build_action_items, recency_cutoff
from .config import settings
from .errors import IntegrationError, NotFoundOrForbidden, StoreUnavailable, ValidationFailure
from .utils import uploads
from .utils.clock import Clock, as_utc, utc_now
from .utils.google_client import GoogleClient
from .utils.token_cipher import encrypt_token

PWD_CTX = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
JWT_SECRET = settings.JWT_SECRET
JWT_ALGORITHM = settings.JWT_ALGORITHM
JWT_EXPIRE_HOURS = settings.JWT_EXPIRE_HOURS

logger = logging.getLogger("ssdi_tracker.services")


class AuthService:
    """Authentication related operations (register + authenticate)."""
    def __init__(self, session: Session):
        self.session = session
        self.user_repo = repositories.UserRepository(session)

    def register(self, username: str, password: str, name: Optional[str] = None,
                 application_id: Optional[str] = None, email: Optional[str] = None) -> models.User:
        """Create a new user with a hashed password.

        Returns the persisted `User` instance.
        """
        hashed = PWD_CTX.hash(password)
        u = models.User(username=username, password_hash=hashed, name=name, application_id=application_id, email=email)
        return self.user_repo.create(u)

    def authenticate(self, username: str, password: str):
        """Verify credentials and return a signed JWT token on success.

        Returns `None` if authentication fails.
        """
        user = self.user_repo.get_by_username(username)
        if not user:
            return None
        if not PWD_CTX.verify(password, user.password_hash):
            return None
        expire = utc_now() + timedelta(hours=JWT_EXPIRE_HOURS)
        payload = {"user_id": user.id, "username": user.username, "exp": int(expire.timestamp())}
        token = jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)
        return token


class ActionItemService:
    """Build the dashboard's action-item view for one user.

    The four source reads are independent, so they run on a thread pool,
    each with its own session. All of them must succeed before anything
    is merged: a failed read raises `StoreUnavailable` instead of
    returning a view with a category silently missing.
    """
    def __init__(self, session_factory: Callable[[], Session], clock: Clock = utc_now, max_workers: Optional[int] = None):
        self.session_factory = session_factory
        self.clock = clock
        self.max_workers = max_workers or settings.ACTION_ITEM_WORKERS

    def _read(self, query: Callable[[Session], list]) -> list:
        with self.session_factory() as session:
            return list(query(session))

    def get_action_items(self, user_id: int) -> ActionItems:
        """Return `needs_attention` and `completed` items for `user_id`."""
        now = as_utc(self.clock())
        cutoff = recency_cutoff(now)
        queries: Dict[str, Callable[[Session], list]] = {
            "missing": lambda s: repositories.DocumentRepository(s).list_missing_for_user(user_id),
            "open": lambda s: repositories.TrackingRepository(s).list_open_actions(user_id),
            "uploaded": lambda s: repositories.DocumentRepository(s).list_uploaded_since(user_id, cutoff),
            "done": lambda s: repositories.TrackingRepository(s).list_completed_since(user_id, cutoff),
        }
        results: Dict[str, list] = {}
        failures = []
        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            futures = {name: pool.submit(self._read, query) for name, query in queries.items()}
            for name, future in futures.items():
                try:
                    results[name] = future.result()
                except SQLAlchemyError as exc:
                    failures.append((name, exc))
        if failures:
            name, exc = failures[0]
            logger.error("action_items_read_failed user_id=%s read=%s error=%s", user_id, name, exc)
            raise StoreUnavailable(f"failed to load action items ({name})") from exc
        return build_action_items(results["missing"], results["open"], results["uploaded"], results["done"], now)


class TrackingService:
    """Log SSA communications and resolve the actions they require."""
    def __init__(self, session: Session, clock: Clock = utc_now):
        self.session = session
        self.clock = clock
        self.repo = repositories.TrackingRepository(session)

    def list_for_user(self, user_id: int) -> List[models.TrackingEntry]:
        return self.repo.list_for_user(user_id)

    def create(
        self,
        user_id: int,
        data: dict,
        attachment_bytes: Optional[bytes] = None,
        attachment_name: Optional[str] = None,
    ) -> models.TrackingEntry:
        """Persist a tracking entry; timestamps are normalized to UTC.

        An attached file (a scanned letter, a screenshot of a message) is
        validated and stored like a document upload.
        """
        if data.get("action_deadline") and not data.get("is_action_required"):
            raise ValidationFailure("action_deadline requires is_action_required")
        entry = models.TrackingEntry(
            user_id=user_id,
            type=data["type"],
            title=data["title"],
            description=data["description"],
            received_at=as_utc(data["received_at"]),
            source=data["source"],
            priority=data["priority"],
            is_action_required=bool(data.get("is_action_required")),
            action_deadline=as_utc(data.get("action_deadline")),
            notes=data.get("notes"),
        )
        if attachment_bytes is not None and attachment_name:
            entry.attachment_file_name, entry.attachment_file_size = uploads.store_upload(attachment_bytes, attachment_name)
        return self.repo.create(entry)

    def delete(self, entry_id: int, user_id: int) -> None:
        entry = self.repo.get_owned(entry_id, user_id)
        if not entry:
            raise NotFoundOrForbidden(f"tracking entry not found: {entry_id}")
        file_name = entry.attachment_file_name
        self.repo.delete(entry)
        uploads.delete_upload(file_name)

    def mark_complete(self, entry_id: int, user_id: int) -> models.TrackingEntry:
        """Mark the action of one entry as done.

        An entry that is already completed is returned unchanged so that a
        repeated request does not move it around in the recent list.
        """
        try:
            entry = self.repo.get_owned(entry_id, user_id)
            if not entry:
                raise NotFoundOrForbidden(f"tracking entry not found: {entry_id}")
            if entry.action_completed_at is not None:
                return entry
            entry.is_action_required = False
            entry.action_completed_at = as_utc(self.clock())
            return self.repo.save(entry)
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.exception("mark_complete_failed entry_id=%s", entry_id)
            raise StoreUnavailable("failed to update tracking entry") from exc


class SectionService:
    """Manage document sections and summarize application progress."""
    def __init__(self, session: Session):
        self.session = session
        self.repo = repositories.SectionRepository(session)

    def list_for_user(self, user_id: int) -> List[models.Section]:
        return self.repo.list_for_user(user_id)

    def create(self, user_id: int, name: str, description: Optional[str], status: str, order: int) -> models.Section:
        if status not in models.SECTION_STATUSES:
            raise ValidationFailure(f"unknown section status: {status}")
        section = models.Section(user_id=user_id, name=name, description=description, status=status, order=order)
        return self.repo.create(section)

    def update_status(self, section_id: int, user_id: int, status: str) -> models.Section:
        if status not in models.SECTION_STATUSES:
            raise ValidationFailure(f"unknown section status: {status}")
        section = self.repo.get_owned(section_id, user_id)
        if not section:
            raise NotFoundOrForbidden(f"section not found: {section_id}")
        section.status = status
        return self.repo.save(section)

    def get_progress(self, user_id: int) -> dict:
        """Count sections per status and compute the completion percentage."""
        sections = self.repo.list_for_user(user_id)
        counts = {s: 0 for s in models.SECTION_STATUSES}
        for section in sections:
            counts[section.status] = counts.get(section.status, 0) + 1
        total = len(sections)
        percentage = round(counts["complete"] / total * 100) if total > 0 else 0
        return {
            'total': total,
            'complete': counts["complete"],
            'in_progress': counts["in-progress"],
            'needs_attention': counts["needs-attention"],
            'percentage': percentage,
        }


class DocumentService:
    """Create, update and remove documents inside the user's sections."""
    def __init__(self, session: Session, clock: Clock = utc_now):
        self.session = session
        self.clock = clock
        self.repo = repositories.DocumentRepository(session)
        self.section_repo = repositories.SectionRepository(session)

    def list_for_section(self, section_id: int, user_id: int) -> List[models.Document]:
        section = self.section_repo.get_owned(section_id, user_id)
        if not section:
            raise NotFoundOrForbidden(f"section not found: {section_id}")
        return self.repo.list_for_section(section.id)

    def create(
        self,
        user_id: int,
        section_id: int,
        *,
        name: str,
        description: str,
        category: str,
        notes: Optional[str] = None,
        status: Optional[str] = None,
        file_bytes: Optional[bytes] = None,
        filename: Optional[str] = None,
    ) -> models.Document:
        """Create a document, storing the attached file if one was sent.

        With a file the document is `uploaded`; without one it takes the
        requested status (`pending` by default). Requesting `uploaded`
        without a file records a paper copy handed in to the SSA office,
        so it is stamped the same way as an upload.
        """
        section = self.section_repo.get_owned(section_id, user_id)
        if not section:
            raise NotFoundOrForbidden(f"section not found: {section_id}")
        if not name or not name.strip() or not description or not description.strip():
            raise ValidationFailure("name and description are required")
        if category not in models.DOCUMENT_CATEGORIES:
            raise ValidationFailure(f"unknown document category: {category}")
        if status is not None and status not in models.DOCUMENT_STATUSES:
            raise ValidationFailure(f"unknown document status: {status}")
        doc = models.Document(
            section_id=section.id,
            user_id=section.user_id,
            name=name.strip(),
            description=description.strip(),
            notes=notes or None,
            category=category,
        )
        if file_bytes is not None and filename:
            doc.file_name, doc.file_size = uploads.store_upload(file_bytes, filename)
            doc.status = "uploaded"
            doc.uploaded_at = as_utc(self.clock())
        else:
            doc.status = status or "pending"
            if doc.status == "uploaded":
                doc.uploaded_at = as_utc(self.clock())
        return self.repo.create(doc)

    def update(self, document_id: int, user_id: int, changes: dict) -> models.Document:
        """Apply a partial update; moving to `uploaded` stamps `uploaded_at`.

        No file is needed for that move, matching `create`.
        """
        doc = self.repo.get_owned(document_id, user_id)
        if not doc:
            raise NotFoundOrForbidden(f"document not found: {document_id}")
        status = changes.get("status")
        if status is not None:
            if status not in models.DOCUMENT_STATUSES:
                raise ValidationFailure(f"unknown document status: {status}")
            if status == "uploaded" and doc.status != "uploaded":
                doc.uploaded_at = as_utc(self.clock())
            doc.status = status
        if "notes" in changes:
            doc.notes = changes["notes"]
        if "contact_info" in changes:
            doc.contact_info = changes["contact_info"]
        return self.repo.save(doc)

    def delete(self, document_id: int, user_id: int) -> None:
        doc = self.repo.get_owned(document_id, user_id)
        if not doc:
            raise NotFoundOrForbidden(f"document not found: {document_id}")
        file_name = doc.file_name
        self.repo.delete(doc)
        uploads.delete_upload(file_name)


class FileService:
    """Look up stored uploads on behalf of their owner."""
    def __init__(self, session: Session):
        self.session = session
        self.document_repo = repositories.DocumentRepository(session)
        self.tracking_repo = repositories.TrackingRepository(session)

    def resolve(self, file_name: str, user_id: int):
        """Return the path of a file attached to one of the user's documents or tracking entries."""
        owned = (self.document_repo.get_owned_by_file_name(file_name, user_id)
                 or self.tracking_repo.get_owned_by_attachment(file_name, user_id))
        path = uploads.resolve_upload(file_name) if owned else None
        if path is None:
            raise NotFoundOrForbidden(f"file not found: {file_name}")
        return path


class ContactService:
    """CRUD for the user's contacts."""
    def __init__(self, session: Session):
        self.session = session
        self.repo = repositories.ContactRepository(session)

    def list_for_user(self, user_id: int) -> List[models.Contact]:
        return self.repo.list_for_user(user_id)

    def create(self, user_id: int, data: dict) -> models.Contact:
        return self.repo.create(models.Contact(user_id=user_id, **data))

    def update(self, contact_id: int, user_id: int, changes: dict) -> models.Contact:
        contact = self.repo.get_owned(contact_id, user_id)
        if not contact:
            raise NotFoundOrForbidden(f"contact not found: {contact_id}")
        for key in ("name", "role", "email"):
            if key in changes:
                if key != "role" and changes[key] is None:
                    raise ValidationFailure(f"{key} cannot be empty")
                setattr(contact, key, changes[key])
        return self.repo.save(contact)

    def delete(self, contact_id: int, user_id: int) -> None:
        contact = self.repo.get_owned(contact_id, user_id)
        if not contact:
            raise NotFoundOrForbidden(f"contact not found: {contact_id}")
        self.repo.delete(contact)


class IntegrationService:
    """Google account connection plus the calendar and email features using it."""
    def __init__(self, session: Session, client: GoogleClient):
        self.session = session
        self.client = client
        self.repo = repositories.IntegrationRepository(session)
        self.document_repo = repositories.DocumentRepository(session)

    def status(self, user_id: int) -> dict:
        integration = self.repo.get_for_user(user_id)
        if not integration:
            return {'isConnected': False}
        return {'isConnected': True, 'email': integration.email}

    def connect(self, user_id: int, email: str, access_token: str, expiry_date, scopes: str) -> models.GoogleIntegration:
        integration = models.GoogleIntegration(
            user_id=user_id,
            email=email,
            access_token=encrypt_token(access_token),
            expiry_date=as_utc(expiry_date),
            scopes=scopes,
        )
        return self.repo.upsert(integration)

    def disconnect(self, user_id: int) -> bool:
        return self.repo.delete_for_user(user_id)

    def create_deadline_reminder(self, user_id: int, entry: models.TrackingEntry) -> bool:
        """Put the entry's deadline on the user's calendar when possible.

        Returns whether an event was created. Calendar failures never undo
        the tracking entry; they are logged and reported as `False`.
        """
        if not entry.is_action_required or entry.action_deadline is None:
            return False
        integration = self.repo.get_for_user(user_id)
        if not integration:
            return False
        try:
            self.client.create_calendar_event(
                integration,
                summary=entry.title,
                description=f"{entry.description}\n\nNotes: {entry.notes or 'N/A'}",
                start=entry.action_deadline,
            )
        except IntegrationError as exc:
            logger.warning("calendar_event_failed user_id=%s entry_id=%s error=%s", user_id, entry.id, exc)
            return False
        return True

    def send_email(self, user_id: int, to: str, subject: str, body: str, attachment_ids: List[int]) -> None:
        """Send an email from the connected account with documents attached.

        Ids that are not the user's documents or have no stored file are
        skipped.
        """
        integration = self.repo.get_for_user(user_id)
        if not integration:
            raise IntegrationError("Google integration not found for this user")
        attachments = []
        for doc_id in attachment_ids:
            doc = self.document_repo.get_owned(doc_id, user_id)
            if not doc or not doc.file_name:
                continue
            path = uploads.resolve_upload(doc.file_name)
            if path is None:
                continue
            attachments.append((f"{doc.name}{path.suffix}", path.read_bytes()))
        self.client.send_email(integration, to=to, subject=subject, body=body, attachments=attachments)
