"""
Domain errors raised by the in-patient services.

Every error carries a machine readable ``code`` and the HTTP status the API
answers with; :func:`ipd.exceptions.api_exception_handler` renders them.
Validation and precondition errors are raised before any write happens.
:class:`PartialDischargeFailure` is the only error raised after a write
committed and it is always resumable.
"""
from __future__ import annotations

from typing import Any, Optional


class IPDError(Exception):
    code = 'ipd_error'
    status_code = 400

    def __init__(self, message: str = '', **context: Any) -> None:
        super().__init__(message or self.default_message())
        self.context = context

    def default_message(self) -> str:
        return self.code.replace('_', ' ')

    def payload(self) -> dict:
        data = {'code': self.code, 'message': str(self)}
        data.update(self.context)
        return data


class ValidationFailed(IPDError):
    code = 'validation_failed'

    def __init__(self, field: str, message: str = '') -> None:
        self.field = field
        super().__init__(message or f'{field} is required', field=field)


class ConstraintRejected(IPDError):
    """A categorical value fell outside its canonical set."""
    code = 'constraint_rejected'

    def __init__(self, field: str, value: Any, accepted: list) -> None:
        self.field = field
        self.value = value
        self.accepted = list(accepted)
        super().__init__(
            f'{field}={value!r} is not one of {", ".join(self.accepted)}',
            field=field, value=value, accepted=self.accepted,
        )


class BedNotFound(IPDError):
    code = 'bed_not_found'
    status_code = 404

    def __init__(self, bed_id: Any) -> None:
        super().__init__(f'bed {bed_id} not found', bedId=bed_id)


class BedUnavailable(IPDError):
    code = 'bed_unavailable'
    status_code = 409

    def __init__(self, bed_id: Any) -> None:
        super().__init__(f'bed {bed_id} is not available', bedId=bed_id)


class AdmissionNotFound(IPDError):
    code = 'admission_not_found'
    status_code = 404

    def __init__(self, admission_id: Any) -> None:
        super().__init__(f'admission {admission_id} not found', admissionId=str(admission_id))


class PatientAlreadyAdmitted(IPDError):
    code = 'patient_already_admitted'
    status_code = 409

    def __init__(self, patient_id: Any) -> None:
        super().__init__(f'patient {patient_id} already has an active admission', patientId=patient_id)


class AlreadyDischarged(IPDError):
    code = 'already_discharged'
    status_code = 200

    def __init__(self, admission_id: Any) -> None:
        super().__init__(f'admission {admission_id} is already discharged', admissionId=str(admission_id))


class InvalidEntryTransition(IPDError):
    code = 'invalid_entry_transition'
    status_code = 409

    def __init__(self, entry_id: Any, current: str, new: str) -> None:
        super().__init__(f'cannot move entry {entry_id} from {current} to {new}', entryId=entry_id)


class PartialDischargeFailure(IPDError):
    code = 'discharge_incomplete'
    status_code = 409

    def __init__(
        self,
        step: int,
        admission_id: Any,
        summary_id: Optional[int] = None,
        bill_id: Optional[int] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        self.step = step
        self.admission_id = admission_id
        self.summary_id = summary_id
        self.bill_id = bill_id
        self.cause = cause
        super().__init__(
            'discharge incomplete - resume required',
            step=step,
            admissionId=str(admission_id),
            summaryId=summary_id,
            billId=bill_id,
            resumable=True,
            reason=str(cause) if cause else None,
        )
