"""CLI script to load a demo applicant with sample sections, documents and SSA letters.
Usage: python scripts/seed_demo.py [--username NAME] [--password PASSWORD]
"""
import sys
import argparse
import pathlib
from datetime import datetime, timezone
# Ensure `backend/` is on sys.path so `ssdi_tracker` package imports work when running this script directly
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
from sqlmodel import Session
from ssdi_tracker.database import engine, create_db_and_tables
from ssdi_tracker import models, repositories, services

SECTIONS = [
    ("Initial Application Documents", "Basic information to start your application", "complete", [
        dict(name="Birth Certificate", description="Proves your age and citizenship status", file_name="birth_certificate.pdf",
             file_size=2048000, status="uploaded", notes="Official copy from vital records office", category="government"),
        dict(name="W-2 Forms (Last 2 Years)", description="Shows your recent work history and earnings", file_name="w2_forms_2022_2023.pdf",
             file_size=1536000, status="uploaded", notes="Forms from ABC Manufacturing", category="employment"),
        dict(name="Tax Returns (Last 2 Years)", description="Additional proof of income and work history", file_name="tax_returns_2022_2023.pdf",
             file_size=3072000, status="uploaded", notes="Filed jointly with spouse", category="personal"),
    ]),
    ("Medical Evidence", "Documents that prove your disability", "in-progress", [
        dict(name="Primary Care Physician Records", description="Records from Dr. Johnson showing ongoing treatment",
             file_name="dr_johnson_records.pdf", file_size=4096000, status="uploaded",
             contact_info="Dr. Johnson's office - (555) 123-4567", notes="Records from 2022-2024", category="medical"),
        dict(name="Specialist Reports", description="Reports from specialists who treated your condition", status="missing",
             contact_info="Dr. Martinez's office - (555) 123-4567", notes="Need orthopedic specialist reports", category="medical"),
    ]),
    ("Work History Documentation", "Proof of your past employment and job duties", "complete", [
        dict(name="Employment Records (ABC Manufacturing)", description="Job description and employment dates: 2018-2023",
             file_name="abc_employment_records.pdf", file_size=1024000, status="uploaded",
             notes="HR department provided complete records", category="employment"),
        dict(name="Job Description Letters", description="Detailed description of daily tasks and physical requirements",
             file_name="job_descriptions.pdf", file_size=512000, status="uploaded",
             notes="Includes physical demands analysis", category="employment"),
    ]),
    ("Appeals Process Documents", "Documents needed if your application is denied", "needs-attention", [
        dict(name="Denial Letter", description="Official denial letter explaining why your application was rejected", status="missing",
             notes="Required to start appeal process - deadline May 15, 2024", category="legal"),
    ]),
]

TRACKING = [
    dict(type="email", title="Early Retirement Application Received",
         description="Confirmation that your early retirement application has been received and is being processed",
         received_at=datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc), source="ssa_gov", priority="medium",
         is_action_required=False, notes="Application reference: ER-2024-001234"),
    dict(type="letter", title="Request for Additional Documentation",
         description="Social Security Administration requesting additional employment verification documents",
         received_at=datetime(2024, 2, 1, 14, 0, tzinfo=timezone.utc), source="mail", priority="high",
         is_action_required=True, action_deadline=datetime(2024, 3, 1, 23, 59, 59, tzinfo=timezone.utc),
         notes="Need to provide W-2 forms from 2019-2023 and employment verification letter"),
    dict(type="phone_call", title="Status Update Call",
         description="Called SSA to check on application status - told processing is taking 3-4 months",
         received_at=datetime(2024, 2, 15, 11, 15, tzinfo=timezone.utc), source="phone", priority="low",
         is_action_required=False,
         notes="Spoke with representative Sarah Johnson. Case number: ER-2024-001234. Expected decision by April 2024."),
    dict(type="deadline", title="Medical Exam Appointment",
         description="Scheduled medical examination required for early retirement application",
         received_at=datetime(2024, 2, 20, 9, 0, tzinfo=timezone.utc), source="social_security", priority="high",
         is_action_required=True, action_deadline=datetime(2024, 3, 15, 14, 0, tzinfo=timezone.utc),
         notes="Appointment with Dr. Wilson at Downtown Medical Center. Bring ID and insurance cards."),
]


def seed(session: Session, username: str, password: str) -> bool:
    """Create the demo applicant and sample data.

    Returns False without touching anything when `username` already exists.
    Sample documents are inserted as rows only; no files are written.
    """
    if repositories.UserRepository(session).get_by_username(username):
        return False
    user = services.AuthService(session).register(
        username, password, name="John Smith", application_id="SS-2024-001234"
    )
    section_repo = repositories.SectionRepository(session)
    doc_repo = repositories.DocumentRepository(session)
    now = datetime.now(timezone.utc)
    for order, (name, description, status, documents) in enumerate(SECTIONS, start=1):
        section = section_repo.create(models.Section(
            user_id=user.id, name=name, description=description, status=status, order=order
        ))
        for doc in documents:
            uploaded_at = now if doc["status"] == "uploaded" else None
            doc_repo.create(models.Document(section_id=section.id, user_id=user.id, uploaded_at=uploaded_at, **doc))
    tracking = services.TrackingService(session)
    for entry in TRACKING:
        tracking.create(user.id, entry)
    return True


def main(username: str = "john.smith", password: str = "password"):
    create_db_and_tables()
    with Session(engine) as session:
        if seed(session, username, password):
            print(f"Seeded demo user {username}")
        else:
            print(f"User {username} already exists; nothing to do")


if __name__ == '__main__':
    parser = argparse.ArgumentParser()
    parser.add_argument('--username', default='john.smith', help='Demo login name')
    parser.add_argument('--password', default='password', help='Demo password')
    args = parser.parse_args()
    main(username=args.username, password=args.password)
