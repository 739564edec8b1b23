import pytest
from django.contrib.auth import authenticate
from django.core.management import call_command

from ipd.models import Bed, Patient, User

pytestmark = pytest.mark.django_db


def test_seed_ward_is_idempotent():
    call_command("seed_ward")
    call_command("seed_ward")
    assert Bed.objects.count() == 20
    assert set(Bed.objects.values_list("room_category", flat=True)) == {"GENERAL", "PRIVATE", "ICU", "EMERGENCY"}
    assert Patient.objects.count() == 4


def test_seed_ward_without_patients():
    call_command("seed_ward", "--no-patients")
    assert Bed.objects.exists()
    assert not Patient.objects.exists()


def test_ensure_test_users_resets_password_and_role():
    User.objects.create_user(username="billing1", password="old", role="nurse")
    call_command("ensure_test_users", "--password", "N3w-pass")
    user = User.objects.get(username="billing1")
    assert user.role == "billing"
    assert authenticate(username="billing1", password="N3w-pass") == user
    assert User.objects.filter(role="reception").count() == 1


def test_resume_discharges_with_nothing_pending(capsys):
    call_command("resume_discharges", "--dry-run")
    assert "no incomplete discharges" in capsys.readouterr().out
