"""
Management command to populate the ward with beds and demo patients.
"""
from decimal import Decimal

from django.core.management.base import BaseCommand

from ipd.choices import RoomCategory
from ipd.models import Bed, Patient

BED_LAYOUT = [
    # prefix, category, count, daily rate
    ("G", RoomCategory.GENERAL, 10, Decimal("1000.00")),
    ("P", RoomCategory.PRIVATE, 4, Decimal("3500.00")),
    ("ICU", RoomCategory.ICU, 4, Decimal("8000.00")),
    ("ER", RoomCategory.EMERGENCY, 2, Decimal("2500.00")),
]

DEMO_PATIENTS = [
    ("P000001", "Asha", "Verma", "9810000001", "Dr. Mehta", "General Medicine"),
    ("P000002", "Ravi", "Kumar", "9810000002", "Dr. Rao", "Orthopaedics"),
    ("P000003", "Meena", "Iyer", "9810000003", "Dr. Mehta", "General Medicine"),
    ("P000004", "Sunil", "Das", "9810000004", "Dr. Khan", "Cardiology"),
]


class Command(BaseCommand):
    help = "Create beds for every room category and a few demo patients (idempotent)."

    def add_arguments(self, parser):
        parser.add_argument("--no-patients", action="store_true", help="only create beds")

    def handle(self, *args, **opts):
        beds_created = 0
        for prefix, category, count, rate in BED_LAYOUT:
            for n in range(1, count + 1):
                _, created = Bed.objects.get_or_create(
                    bed_number=f"{prefix}-{n:02d}",
                    defaults={"room_category": category, "daily_rate": rate},
                )
                beds_created += int(created)
        self.stdout.write(self.style.SUCCESS(f"beds created: {beds_created}"))

        if opts["no_patients"]:
            return
        patients_created = 0
        for code, first, last, phone, doctor, dept in DEMO_PATIENTS:
            _, created = Patient.objects.get_or_create(
                patient_code=code,
                defaults={
                    "first_name": first,
                    "last_name": last,
                    "phone": phone,
                    "assigned_doctor": doctor,
                    "assigned_department": dept,
                },
            )
            patients_created += int(created)
        self.stdout.write(self.style.SUCCESS(f"patients created: {patients_created}"))
