import os

# Configuration is read at import time, so it must be in place before app modules load
os.environ['DATABASE_URL'] = 'sqlite:///test_kinship.db'
os.environ['SECRET_KEY'] = 'test-secret-key'
os.environ['CHECKR_API_KEY'] = 'test-checkr-key'
os.environ['IDENFY_API_KEY'] = 'test-idenfy-key'
os.environ['IDENFY_API_SECRET'] = 'test-idenfy-secret'
os.environ['IDENFY_WEBHOOK_SECRET'] = 'test-idenfy-webhook-secret'
os.environ['LOG_FILE'] = 'logs/test_kinship.log'

import threading
import uuid
from datetime import datetime
import pytest
from app.database import drop_db, init_db, DatabaseManager
from app.models import User, Applicant
from app.models.user import UserRole
from app.models.applicant import ApplicationStatus, ScreeningStatus
from app.services.screening_store import derive_screening_status


@pytest.fixture
def database():
    """Fresh schema for each test"""
    init_db()
    yield
    drop_db()


@pytest.fixture
def make_user(database):
    """Factory for users"""
    user_db = DatabaseManager(User)

    def _make_user(role=UserRole.APPLICANT, **overrides):
        fields = {
            'email': f'user-{uuid.uuid4().hex[:8]}@example.com',
            'first_name': 'Jane',
            'last_name': 'Doe',
            'role': role
        }
        fields.update(overrides)
        return user_db.create(**fields)

    return _make_user


@pytest.fixture
def make_applicant(make_user):
    """Factory for applicants at a given screening stage"""
    applicant_db = DatabaseManager(Applicant)

    def _make_applicant(user=None, consented=True,
                        idenfy_status=ScreeningStatus.PENDING,
                        checkr_status=ScreeningStatus.PENDING,
                        application_status=ApplicationStatus.SUBMITTED,
                        **overrides):
        user = user or make_user()
        fields = {
            'user_id': user.id,
            'application_status': application_status,
            'idenfy_status': idenfy_status,
            'checkr_status': checkr_status,
            'screening_status': derive_screening_status(idenfy_status, checkr_status)
        }
        if consented:
            fields['background_check_consent_at'] = datetime.utcnow()
            fields['background_check_consent_ip'] = '203.0.113.7'
        fields.update(overrides)
        return applicant_db.create(**fields)

    return _make_applicant


@pytest.fixture
def run_concurrently():
    """Run a callable in several threads released together; returns their results"""

    def _run(target, count=5):
        barrier = threading.Barrier(count)
        results = []
        lock = threading.Lock()

        def worker():
            barrier.wait()
            outcome = target()
            with lock:
                results.append(outcome)

        threads = [threading.Thread(target=worker) for _ in range(count)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        return results

    return _run
