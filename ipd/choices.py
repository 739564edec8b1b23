"""
Canonical enumerations shared by every writer in the in-patient module.

Each categorical column in :mod:`ipd.models` draws its values from one of
these classes and the database carries a matching CHECK constraint.  Input
coming from the ward UI or from legacy bed records is normalised through
:func:`coerce` before it is written, so mixed casing such as ``'icu'`` or
``'General'`` never reaches the store.
"""
from __future__ import annotations

from django.db import models

from .errors import ConstraintRejected


class RoomCategory(models.TextChoices):
    GENERAL = 'GENERAL', 'General ward'
    PRIVATE = 'PRIVATE', 'Private room'
    ICU = 'ICU', 'Intensive care'
    EMERGENCY = 'EMERGENCY', 'Emergency'


class BedStatus(models.TextChoices):
    AVAILABLE = 'AVAILABLE', 'Available'
    OCCUPIED = 'OCCUPIED', 'Occupied'


class AdmissionStatus(models.TextChoices):
    ACTIVE = 'ACTIVE', 'Active'
    DISCHARGED = 'DISCHARGED', 'Discharged'


class LedgerCategory(models.TextChoices):
    CONSULTATION = 'CONSULTATION', 'Consultation'
    NURSING = 'NURSING', 'Nursing'
    MEDICINE = 'MEDICINE', 'Medicine'
    DIAGNOSTIC = 'DIAGNOSTIC', 'Diagnostic'
    PROCEDURE = 'PROCEDURE', 'Procedure'
    ACCOMMODATION = 'ACCOMMODATION', 'Accommodation'
    OTHER = 'OTHER', 'Other'
    IPD_PAYMENT = 'IPD_PAYMENT', 'IPD payment'
    IPD_ADVANCE = 'IPD_ADVANCE', 'IPD advance'
    REFUND = 'REFUND', 'Refund'


PAYMENT_CATEGORIES = frozenset({
    LedgerCategory.IPD_PAYMENT.value,
    LedgerCategory.IPD_ADVANCE.value,
    LedgerCategory.REFUND.value,
})
CHARGE_CATEGORIES = frozenset(set(LedgerCategory.values) - PAYMENT_CATEGORIES)


class EntryStatus(models.TextChoices):
    PENDING = 'PENDING', 'Pending'
    COMPLETED = 'COMPLETED', 'Completed'
    CANCELLED = 'CANCELLED', 'Cancelled'


class PaymentMode(models.TextChoices):
    CASH = 'CASH', 'Cash'
    CARD = 'CARD', 'Card'
    UPI = 'UPI', 'UPI'
    BANK_TRANSFER = 'BANK_TRANSFER', 'Bank transfer'
    INSURANCE = 'INSURANCE', 'Insurance'


class DischargeType(models.TextChoices):
    ROUTINE = 'ROUTINE', 'Routine'
    LAMA = 'LAMA', 'Left against medical advice'
    TRANSFER = 'TRANSFER', 'Transfer'
    EXPIRED = 'EXPIRED', 'Expired'
    ABSCOND = 'ABSCOND', 'Absconded'


class DischargeCondition(models.TextChoices):
    STABLE = 'STABLE', 'Stable'
    IMPROVED = 'IMPROVED', 'Improved'
    SAME = 'SAME', 'Same'
    DETERIORATED = 'DETERIORATED', 'Deteriorated'


def coerce(choices: type[models.TextChoices], value, *, field: str) -> str:
    """Return the canonical member value for ``value``.

    Surrounding whitespace is dropped and the value is upper-cased before
    the lookup.  Anything outside ``choices`` raises
    :class:`~ipd.errors.ConstraintRejected` naming the offending value and
    the accepted set; no alternative spelling is guessed.
    """
    raw = value.value if isinstance(value, models.TextChoices) else value
    normalised = str(raw or '').strip().upper()
    if normalised in choices.values:
        return normalised
    raise ConstraintRejected(field=field, value=raw, accepted=list(choices.values))
