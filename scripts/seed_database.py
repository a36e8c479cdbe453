#!/usr/bin/env python3
"""
Script to seed the database with sample applicants for local testing
"""

import sys
import os
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from datetime import datetime, timedelta
from app.database import init_db, drop_db, get_db
from app.models import User, Applicant
from app.models.user import UserRole
from app.models.applicant import ApplicationStatus, ScreeningStatus
from app.services.screening_store import derive_screening_status
from app.utils.security import generate_token


def create_users(db):
    """Create an admin and applicants at different screening stages"""
    admin = User(
        email='admin@kinship.dating',
        first_name='Admin',
        last_name='User',
        role=UserRole.ADMIN
    )
    db.add(admin)

    stages = [
        # (first name, application status, consented, identity, background)
        ('Avery', ApplicationStatus.PAYMENT_PENDING, False, ScreeningStatus.PENDING, ScreeningStatus.PENDING),
        ('Blake', ApplicationStatus.SUBMITTED, True, ScreeningStatus.PENDING, ScreeningStatus.PENDING),
        ('Casey', ApplicationStatus.SCREENING_IN_PROGRESS, True, ScreeningStatus.FAILED, ScreeningStatus.PENDING),
        ('Devon', ApplicationStatus.SCREENING_IN_PROGRESS, True, ScreeningStatus.PASSED, ScreeningStatus.PENDING),
    ]

    applicants = []
    for i, (first_name, app_status, consented, identity, background) in enumerate(stages):
        user = User(
            email=f'{first_name.lower()}@example.com',
            first_name=first_name,
            last_name='Sample',
            role=UserRole.APPLICANT
        )
        db.add(user)
        db.flush()

        applicant = Applicant(
            user_id=user.id,
            application_status=app_status,
            idenfy_status=identity,
            checkr_status=background,
            screening_status=derive_screening_status(identity, background)
        )
        if consented:
            applicant.background_check_consent_at = datetime.utcnow() - timedelta(days=i + 1)
            applicant.background_check_consent_ip = '127.0.0.1'
        db.add(applicant)
        applicants.append((user, applicant))

    db.flush()
    return admin, applicants


def token_for(user):
    return generate_token({
        'user_id': user.id,
        'email': user.email,
        'role': user.role.value
    }, expires_delta=timedelta(days=7))


def main():
    """Main seeding function"""
    print("Dropping existing database...")
    drop_db()

    print("Initializing new database...")
    init_db()

    with get_db() as db:
        print("Creating users and applicants...")
        admin, applicants = create_users(db)

    print("\nDatabase seeded successfully!")
    print(f"Admin ({admin.email}) token:\n  {token_for(admin)}")
    for user, applicant in applicants:
        print(f"\n{user.full_name}: application {applicant.id} ({applicant.application_status.value})")
        print(f"  token: {token_for(user)}")


if __name__ == "__main__":
    main()
