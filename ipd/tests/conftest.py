from datetime import timedelta
from decimal import Decimal

import pytest
from django.core.cache import cache
from django.utils import timezone
from rest_framework.test import APIClient

from ipd.models import Bed, Patient, User
from ipd.services.admissions import admit
from ipd.services.discharge import DischargeRequest


@pytest.fixture(autouse=True)
def _reset_throttles():
    # throttle counters live in the cache
    cache.clear()
    yield


@pytest.fixture
def patient(db):
    return Patient.objects.create(
        patient_code="P000101", first_name="Asha", last_name="Verma",
        assigned_doctor="Dr. Mehta", assigned_department="General Medicine",
    )


@pytest.fixture
def other_patient(db):
    return Patient.objects.create(patient_code="P000102", first_name="Ravi", last_name="Kumar")


@pytest.fixture
def bed(db):
    return Bed.objects.create(bed_number="G-01", room_category="GENERAL", daily_rate=Decimal("1000.00"))


@pytest.fixture
def icu_bed(db):
    return Bed.objects.create(bed_number="ICU-01", room_category="ICU", daily_rate=Decimal("8000.00"))


@pytest.fixture
def admission(patient, bed):
    return admit(patient=patient, bed=bed, admitted_at=timezone.now() - timedelta(days=2, hours=3))


@pytest.fixture
def make_user(db):
    def _make(role, username=None, password="P@ssw0rd1"):
        return User.objects.create_user(username=username or f"{role}_user", password=password, role=role)
    return _make


@pytest.fixture
def client_for():
    def _client(user):
        client = APIClient()
        client.force_authenticate(user=user)
        return client
    return _client


@pytest.fixture
def discharge_request():
    """A complete, valid discharge request; override fields per test."""
    def _make(**overrides):
        data = dict(
            final_diagnosis="Community acquired pneumonia",
            primary_consultant="Dr. Mehta",
            attendant_name="Kiran Verma",
            attendant_relationship="SPOUSE",
            patient_consent=True,
            documents_handed_over=True,
        )
        data.update(overrides)
        return DischargeRequest(**data)
    return _make
