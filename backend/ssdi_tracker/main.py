"""FastAPI application entrypoint and HTTP controllers.

This module defines the HTTP endpoints of the SSDI case tracker.
Controllers are intentionally thin: they accept requests, delegate to
services, translate domain errors into HTTP status codes and return JSON
responses. Every `/api` endpoint acts on behalf of the bearer-token user.

Endpoints implemented:
- POST /auth/register
- POST /auth/login
- GET /api/user
- GET /api/user/action-items
- GET, POST /api/sections
- PATCH /api/sections/{id}/status
- GET /api/sections/progress
- GET, POST /api/sections/{id}/documents
- PATCH, DELETE /api/documents/{id}
- GET /api/files/{file_name}
- GET, POST /api/retirement-tracking
- DELETE /api/retirement-tracking/{id}
- PATCH /api/retirement-tracking/{id}/complete
- GET, POST /api/contacts
- PATCH, DELETE /api/contacts/{id}
- GET, PUT, DELETE /api/integrations/google
- POST /api/email/send
- GET /health
"""

from fastapi import FastAPI, Depends, UploadFile, File, HTTPException, Form, Request
from fastapi.responses import FileResponse, Response
from fastapi.middleware.cors import CORSMiddleware
from sqlmodel import Session
import os
import json
import logging
import time
import uuid
from datetime import datetime
from typing import Optional
from .database import create_db_and_tables, get_session, session_factory
from . import services, repositories, models, schemas
from .auth import get_current_user
from .config import settings
from .errors import IntegrationError, NotFoundOrForbidden, StoreUnavailable, UnsupportedUpload, ValidationFailure
from .utils.clock import utc_now
from .utils.google_client import GoogleClient

app = FastAPI(title="SSDI Case Tracker API")
logger = logging.getLogger("ssdi_tracker.api")
if not logger.handlers:
    logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))
_clock = utc_now
_google_client = GoogleClient()

# Wide-open CORS keeps a local frontend dev server working without extra config.
if settings.ALLOW_DEV_CORS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

create_db_and_tables()


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    req_id = request.headers.get("X-Request-ID", uuid.uuid4().hex)
    request.state.request_id = req_id
    started = time.perf_counter()
    response: Response
    try:
        response = await call_next(request)
    except Exception:
        elapsed_ms = round((time.perf_counter() - started) * 1000.0, 2)
        if request.url.path.startswith("/api"):
            logger.exception(
                "request_failed %s",
                json.dumps(
                    {
                        "request_id": req_id,
                        "path": request.url.path,
                        "method": request.method,
                        "duration_ms": elapsed_ms,
                        "client": request.client.host if request.client else "unknown",
                    },
                    ensure_ascii=True,
                ),
            )
        raise
    response.headers["X-Request-ID"] = req_id
    elapsed_ms = round((time.perf_counter() - started) * 1000.0, 2)
    if request.url.path.startswith("/api"):
        logger.info(
            "request_done %s",
            json.dumps(
                {
                    "request_id": req_id,
                    "path": request.url.path,
                    "method": request.method,
                    "status_code": response.status_code,
                    "duration_ms": elapsed_ms,
                    "client": request.client.host if request.client else "unknown",
                },
                ensure_ascii=True,
            ),
        )
    return response


@app.post('/auth/register')
def register(payload: schemas.RegisterIn, db: Session = Depends(get_session)):
    """Register a new user (idempotent).

    Returns existing user if the username already exists to make the
    operation idempotent (useful for automation/tests).
    """
    auth = services.AuthService(db)
    existing = repositories.UserRepository(db).get_by_username(payload.username)
    if existing:
        return {'id': existing.id, 'username': existing.username}
    user = auth.register(payload.username, payload.password, name=payload.name,
                         application_id=payload.application_id, email=payload.email)
    return {'id': user.id, 'username': user.username}


@app.post('/auth/login')
def login(payload: schemas.RegisterIn, db: Session = Depends(get_session)):
    """Authenticate a user and return a short-lived JWT token.

    The returned token contains `user_id` and `username` and is signed
    using the configured JWT secret.
    """
    auth = services.AuthService(db)
    token = auth.authenticate(payload.username, payload.password)
    if not token:
        raise HTTPException(status_code=401, detail='invalid credentials')
    return {'access_token': token}


@app.get('/api/user')
def get_user(user: models.User = Depends(get_current_user)):
    """Return the authenticated applicant's profile."""
    return schemas.UserOut.model_validate(user)


@app.get('/api/user/action-items')
def get_action_items(user: models.User = Depends(get_current_user)):
    """Return the dashboard view: items needing attention and recent completions.

    Recomputed on every call from current document and tracking data.
    """
    svc = services.ActionItemService(session_factory, clock=_clock)
    try:
        items = svc.get_action_items(user.id)
    except StoreUnavailable:
        raise HTTPException(status_code=500, detail='Failed to get action items')
    return items.to_dict()


# --- sections & documents ---

@app.get('/api/sections')
def list_sections(db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """List the user's sections in display order."""
    sections = services.SectionService(db).list_for_user(user.id)
    return [schemas.SectionOut.model_validate(s) for s in sections]


@app.post('/api/sections', status_code=201)
def create_section(payload: schemas.SectionIn, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    svc = services.SectionService(db)
    try:
        section = svc.create(user.id, payload.name, payload.description, payload.status, payload.order)
    except ValidationFailure as e:
        raise HTTPException(status_code=400, detail=str(e))
    return schemas.SectionOut.model_validate(section)


@app.get('/api/sections/progress')
def section_progress(db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """Return counts of sections per status and the overall completion percentage."""
    return services.SectionService(db).get_progress(user.id)


@app.patch('/api/sections/{section_id}/status')
def update_section_status(section_id: int, payload: schemas.SectionStatusIn, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    svc = services.SectionService(db)
    try:
        section = svc.update_status(section_id, user.id, payload.status)
    except NotFoundOrForbidden:
        raise HTTPException(status_code=404, detail='Section not found')
    return schemas.SectionOut.model_validate(section)


@app.get('/api/sections/{section_id}/documents')
def list_documents(section_id: int, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    try:
        docs = services.DocumentService(db).list_for_section(section_id, user.id)
    except NotFoundOrForbidden:
        raise HTTPException(status_code=404, detail='Section not found')
    return [schemas.DocumentOut.model_validate(d) for d in docs]


@app.post('/api/sections/{section_id}/documents', status_code=201)
def create_document(
    section_id: int,
    name: str = Form(...),
    description: str = Form(...),
    category: str = Form(...),
    notes: Optional[str] = Form(default=None),
    status: Optional[str] = Form(default=None),
    file: Optional[UploadFile] = File(default=None),
    db: Session = Depends(get_session),
    user: models.User = Depends(get_current_user),
):
    """Add a document to a section, optionally with its file.

    The upload may be a PDF, Word document, JPEG or PNG. A document sent
    with a file is `uploaded`; otherwise it is `pending` unless `status`
    says `missing`.
    """
    file_bytes = None
    filename = None
    if file is not None and file.filename:
        filename = file.filename
        file_bytes = file.file.read(settings.MAX_UPLOAD_BYTES + 1)
    svc = services.DocumentService(db, clock=_clock)
    try:
        doc = svc.create(
            user.id,
            section_id,
            name=name,
            description=description,
            category=category,
            notes=notes,
            status=status,
            file_bytes=file_bytes,
            filename=filename,
        )
    except NotFoundOrForbidden:
        raise HTTPException(status_code=404, detail='Section not found')
    except UnsupportedUpload as e:
        raise HTTPException(status_code=415, detail=str(e))
    except ValidationFailure as e:
        raise HTTPException(status_code=400, detail=str(e))
    return schemas.DocumentOut.model_validate(doc)


@app.patch('/api/documents/{document_id}')
def update_document(document_id: int, payload: schemas.DocumentUpdate, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    svc = services.DocumentService(db, clock=_clock)
    try:
        doc = svc.update(document_id, user.id, payload.model_dump(exclude_unset=True))
    except NotFoundOrForbidden:
        raise HTTPException(status_code=404, detail='Document not found')
    except ValidationFailure as e:
        raise HTTPException(status_code=400, detail=str(e))
    return schemas.DocumentOut.model_validate(doc)


@app.delete('/api/documents/{document_id}')
def delete_document(document_id: int, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    try:
        services.DocumentService(db).delete(document_id, user.id)
    except NotFoundOrForbidden:
        raise HTTPException(status_code=404, detail='Document not found')
    return {'message': 'Document deleted successfully'}


@app.get('/api/files/{file_name}')
def get_file(file_name: str, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """Serve a stored upload attached to one of the user's documents or tracking entries."""
    try:
        path = services.FileService(db).resolve(file_name, user.id)
    except (NotFoundOrForbidden, ValidationFailure):
        raise HTTPException(status_code=404, detail='File not found')
    return FileResponse(path)


# --- retirement tracking ---

@app.get('/api/retirement-tracking')
def list_tracking(db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """List the user's logged communications, most recently received first."""
    entries = services.TrackingService(db).list_for_user(user.id)
    return [schemas.TrackingEntryOut.model_validate(e) for e in entries]


@app.post('/api/retirement-tracking', status_code=201)
def create_tracking(
    type_: schemas.CommunicationType = Form(..., alias='type'),
    title: str = Form(..., min_length=1, max_length=256),
    description: str = Form(..., min_length=1),
    received_at: datetime = Form(...),
    source: schemas.TrackingSource = Form(...),
    priority: schemas.Priority = Form(...),
    is_action_required: bool = Form(default=False),
    action_deadline: Optional[datetime] = Form(default=None),
    notes: Optional[str] = Form(default=None),
    attachment: Optional[UploadFile] = File(default=None),
    db: Session = Depends(get_session),
    user: models.User = Depends(get_current_user),
):
    """Log a communication, optionally with the letter or message attached.

    Deadlines are mirrored to Google Calendar when an account is connected.
    """
    attachment_bytes = None
    attachment_name = None
    if attachment is not None and attachment.filename:
        attachment_name = attachment.filename
        attachment_bytes = attachment.file.read(settings.MAX_UPLOAD_BYTES + 1)
    data = {
        'type': type_,
        'title': title,
        'description': description,
        'received_at': received_at,
        'source': source,
        'priority': priority,
        'is_action_required': is_action_required,
        'action_deadline': action_deadline,
        'notes': notes,
    }
    svc = services.TrackingService(db, clock=_clock)
    try:
        entry = svc.create(user.id, data, attachment_bytes=attachment_bytes, attachment_name=attachment_name)
    except UnsupportedUpload as e:
        raise HTTPException(status_code=415, detail=str(e))
    except ValidationFailure as e:
        raise HTTPException(status_code=400, detail=str(e))
    created = services.IntegrationService(db, _google_client).create_deadline_reminder(user.id, entry)
    out = schemas.TrackingEntryOut.model_validate(entry).model_dump(mode='json')
    out['calendarEventCreated'] = created
    return out


@app.delete('/api/retirement-tracking/{entry_id}')
def delete_tracking(entry_id: int, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    try:
        services.TrackingService(db).delete(entry_id, user.id)
    except NotFoundOrForbidden:
        raise HTTPException(status_code=404, detail='Retirement tracking entry not found')
    return {'message': 'Retirement tracking entry deleted successfully'}


@app.patch('/api/retirement-tracking/{entry_id}/complete')
def complete_tracking(entry_id: int, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """Mark the action required by an entry as completed.

    Entries that do not exist and entries of other users both yield 404.
    """
    svc = services.TrackingService(db, clock=_clock)
    try:
        entry = svc.mark_complete(entry_id, user.id)
    except NotFoundOrForbidden:
        raise HTTPException(status_code=404, detail='Tracking item not found or you do not have permission to update it.')
    except StoreUnavailable:
        raise HTTPException(status_code=500, detail='Failed to mark tracking item as complete.')
    return schemas.TrackingEntryOut.model_validate(entry)


# --- contacts ---

@app.get('/api/contacts')
def list_contacts(db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return [schemas.ContactOut.model_validate(c) for c in services.ContactService(db).list_for_user(user.id)]


@app.post('/api/contacts', status_code=201)
def create_contact(payload: schemas.ContactIn, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    contact = services.ContactService(db).create(user.id, payload.model_dump())
    return schemas.ContactOut.model_validate(contact)


@app.patch('/api/contacts/{contact_id}')
def update_contact(contact_id: int, payload: schemas.ContactUpdate, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    try:
        contact = services.ContactService(db).update(contact_id, user.id, payload.model_dump(exclude_unset=True))
    except NotFoundOrForbidden:
        raise HTTPException(status_code=404, detail='Contact not found.')
    except ValidationFailure as e:
        raise HTTPException(status_code=400, detail=str(e))
    return schemas.ContactOut.model_validate(contact)


@app.delete('/api/contacts/{contact_id}', status_code=204)
def delete_contact(contact_id: int, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    try:
        services.ContactService(db).delete(contact_id, user.id)
    except NotFoundOrForbidden:
        raise HTTPException(status_code=404, detail='Contact not found.')
    return Response(status_code=204)


# --- google integration & email ---

@app.get('/api/integrations/google')
def google_status(db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return services.IntegrationService(db, _google_client).status(user.id)


@app.put('/api/integrations/google')
def connect_google(payload: schemas.GoogleIntegrationIn, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """Store credentials obtained from the OAuth consent flow."""
    svc = services.IntegrationService(db, _google_client)
    svc.connect(user.id, payload.email, payload.access_token, payload.expiry_date, payload.scopes)
    return svc.status(user.id)


@app.delete('/api/integrations/google')
def disconnect_google(db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    services.IntegrationService(db, _google_client).disconnect(user.id)
    return {'message': 'Google account disconnected successfully.'}


@app.post('/api/email/send')
def send_email(payload: schemas.EmailIn, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """Send an email from the connected Google account with documents attached."""
    svc = services.IntegrationService(db, _google_client)
    try:
        svc.send_email(user.id, payload.to, payload.subject, payload.body, payload.attachmentIds)
    except IntegrationError as e:
        logger.warning("email_send_failed user_id=%s error=%s", user.id, e)
        raise HTTPException(status_code=502, detail=f'Failed to send email: {e}')
    return {'message': 'Email sent successfully.'}


@app.get("/health")
def health():
    """Lightweight health check for uptime monitoring."""
    return {"status": "ok"}
