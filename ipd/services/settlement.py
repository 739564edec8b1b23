"""
Settlement calculator.

:func:`calculate_settlement` is pure: it reads ledger entries and the
discharge-time inputs and returns a :class:`Settlement`; it never touches the
database.  Net amount and balance keep their sign.  A negative balance is a
refund owed to the patient and is stored as such; only :attr:`amount_due`
and :attr:`excess_paid` clamp, for display.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Iterable, Optional

from django.conf import settings
from django.utils import timezone

from ipd.choices import CHARGE_CATEGORIES, PAYMENT_CATEGORIES, EntryStatus, LedgerCategory
from ipd.errors import ValidationFailed

CENT = Decimal('0.01')
ZERO = Decimal('0.00')

# manual charge field -> ledger category of the entry written at discharge
MANUAL_CHARGE_CATEGORIES = {
    'doctor_fee': LedgerCategory.CONSULTATION,
    'nursing': LedgerCategory.NURSING,
    'medicine': LedgerCategory.MEDICINE,
    'diagnostic': LedgerCategory.DIAGNOSTIC,
    'operation': LedgerCategory.PROCEDURE,
    'other': LedgerCategory.OTHER,
}
BED_CHARGE_CATEGORY = LedgerCategory.ACCOMMODATION


def money(value, field_name: str = 'amount', *, allow_negative: bool = False) -> Decimal:
    """Coerce ``value`` to a Decimal rounded to paise.

    ``None`` and the empty string count as zero.  Floats go through ``str``
    so ``0.1`` stays ``0.10``.
    """
    if value is None or value == '':
        return ZERO
    try:
        amount = Decimal(str(value)) if not isinstance(value, Decimal) else value
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationFailed(field_name, f'{field_name} must be a number')
    if not amount.is_finite():
        raise ValidationFailed(field_name, f'{field_name} must be a number')
    if amount < 0 and not allow_negative:
        raise ValidationFailed(field_name, f'{field_name} must not be negative')
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class ManualCharges:
    """Charges keyed in at the discharge desk; every field is non-negative.

    ``bed_rate`` is a per-day rate billed for ``stay_days`` on top of
    whatever accommodation the ledger already carries.
    """
    doctor_fee: Decimal = ZERO
    nursing: Decimal = ZERO
    medicine: Decimal = ZERO
    diagnostic: Decimal = ZERO
    operation: Decimal = ZERO
    other: Decimal = ZERO
    bed_rate: Decimal = ZERO

    @classmethod
    def from_data(cls, data: Optional[dict]) -> 'ManualCharges':
        data = data or {}
        names = list(MANUAL_CHARGE_CATEGORIES) + ['bed_rate']
        return cls(**{name: money(data.get(name), name) for name in names})

    def itemised(self, stay_days: int) -> list[tuple[str, LedgerCategory, Decimal]]:
        """Non-zero manual lines as ``(field, category, amount)`` tuples."""
        lines = []
        for name, category in MANUAL_CHARGE_CATEGORIES.items():
            amount = getattr(self, name)
            if amount > 0:
                lines.append((name, category, amount))
        if self.bed_rate > 0 and stay_days > 0:
            lines.append(('bed_charge', BED_CHARGE_CATEGORY, (self.bed_rate * stay_days).quantize(CENT)))
        return lines

    def total(self, stay_days: int) -> Decimal:
        return sum((amount for _, _, amount in self.itemised(stay_days)), ZERO)

    def as_json(self) -> dict:
        return {name: str(value) for name, value in asdict(self).items()}


@dataclass(frozen=True)
class Settlement:
    existing_charges: Decimal
    prior_payments: Decimal
    additional_charges: Decimal
    total_charges: Decimal
    discount: Decimal
    insurance_covered: Decimal
    net_amount: Decimal
    final_payment: Decimal
    total_paid: Decimal
    balance: Decimal
    stay_days: int
    line_items: list = field(default_factory=list)

    @property
    def amount_due(self) -> Decimal:
        return max(self.balance, ZERO)

    @property
    def excess_paid(self) -> Decimal:
        return max(-self.balance, ZERO)

    def as_dict(self) -> dict:
        return {
            'existingCharges': str(self.existing_charges),
            'priorPayments': str(self.prior_payments),
            'additionalCharges': str(self.additional_charges),
            'totalCharges': str(self.total_charges),
            'discount': str(self.discount),
            'insuranceCovered': str(self.insurance_covered),
            'netAmount': str(self.net_amount),
            'finalPayment': str(self.final_payment),
            'totalPaid': str(self.total_paid),
            'balance': str(self.balance),
            'amountDue': str(self.amount_due),
            'excessPaid': str(self.excess_paid),
            'stayDays': self.stay_days,
            'lineItems': self.line_items,
            'currency': getattr(settings, 'HOSPITAL_CURRENCY', 'INR'),
        }


def split_entries(entries: Iterable) -> tuple[Decimal, Decimal]:
    """Return ``(charges, payments)`` over the COMPLETED entries.

    Charges only count positive amounts in a charge category.  Payments sum
    IPD_PAYMENT, IPD_ADVANCE and REFUND; refunds are negative so they reduce
    the total.
    """
    charges = ZERO
    payments = ZERO
    for entry in entries:
        if entry.status != EntryStatus.COMPLETED:
            continue
        amount = Decimal(entry.amount)
        if entry.category in PAYMENT_CATEGORIES:
            payments += amount
        elif entry.category in CHARGE_CATEGORIES and amount > 0:
            charges += amount
    return charges.quantize(CENT), payments.quantize(CENT)


def calculate_settlement(
    entries: Iterable,
    charges: Optional[ManualCharges] = None,
    discount=ZERO,
    insurance_covered=ZERO,
    final_payment=ZERO,
    stay_days: int = 1,
) -> Settlement:
    charges = charges or ManualCharges()
    discount = money(discount, 'discount')
    insurance_covered = money(insurance_covered, 'insurance_covered')
    final_payment = money(final_payment, 'final_payment')
    if stay_days is None or int(stay_days) < 0:
        raise ValidationFailed('stay_days', 'stay_days must not be negative')
    stay_days = int(stay_days)

    existing_charges, prior_payments = split_entries(entries)
    line_items = [
        {'field': name, 'category': str(category), 'amount': str(amount)}
        for name, category, amount in charges.itemised(stay_days)
    ]
    additional_charges = charges.total(stay_days)
    total_charges = existing_charges + additional_charges
    net_amount = total_charges - discount - insurance_covered
    total_paid = prior_payments + final_payment
    return Settlement(
        existing_charges=existing_charges,
        prior_payments=prior_payments,
        additional_charges=additional_charges,
        total_charges=total_charges,
        discount=discount,
        insurance_covered=insurance_covered,
        net_amount=net_amount,
        final_payment=final_payment,
        total_paid=total_paid,
        balance=net_amount - total_paid,
        stay_days=stay_days,
        line_items=line_items,
    )


def preview_settlement(admission, *, charges: Optional[ManualCharges] = None, discount=ZERO,
                       insurance_covered=ZERO, final_payment=ZERO, discharged_at=None) -> Settlement:
    """Settle ``admission`` as if it were discharged at ``discharged_at`` (default now), without writing."""
    from ipd.services.admissions import stay_days as compute_stay_days
    from ipd.services.ledger import entries_for_admission

    discharged_at = discharged_at or timezone.now()
    return calculate_settlement(
        entries_for_admission(admission, until=discharged_at),
        charges=charges,
        discount=discount,
        insurance_covered=insurance_covered,
        final_payment=final_payment,
        stay_days=compute_stay_days(admission.admitted_at, discharged_at),
    )
