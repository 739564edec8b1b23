"""
Django admin registrations for the ward models.

Ledger entries and discharge records are append-only, so their admin pages
are read-only; corrections go through a new ledger entry.
"""

from django.contrib import admin

from .models import (
    Admission,
    AuditEvent,
    Bed,
    DischargeBill,
    DischargeSummary,
    IPDCounter,
    LedgerEntry,
    Patient,
    User,
)


class ReadOnlyAdmin(admin.ModelAdmin):
    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(User)
class UserAdmin(admin.ModelAdmin):
    list_display = ('username', 'role', 'is_staff', 'is_superuser')
    list_filter = ('role',)
    search_fields = ('username', 'first_name', 'last_name')


@admin.register(Patient)
class PatientAdmin(admin.ModelAdmin):
    list_display = ('patient_code', 'first_name', 'last_name', 'phone', 'assigned_doctor')
    search_fields = ('patient_code', 'first_name', 'last_name', 'phone')


@admin.register(Bed)
class BedAdmin(admin.ModelAdmin):
    list_display = ('bed_number', 'room_category', 'daily_rate', 'status', 'occupied_by', 'updated_at')
    list_filter = ('room_category', 'status')
    search_fields = ('bed_number',)
    # occupancy only changes through admit/discharge
    readonly_fields = ('status', 'occupied_by')


@admin.register(Admission)
class AdmissionAdmin(admin.ModelAdmin):
    list_display = ('ipd_number', 'patient', 'bed', 'status', 'admitted_at', 'discharged_at', 'balance_amount')
    list_filter = ('status', 'room_category')
    search_fields = ('ipd_number', 'patient__patient_code', 'patient__first_name')
    readonly_fields = [f.name for f in Admission._meta.fields]

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(LedgerEntry)
class LedgerEntryAdmin(ReadOnlyAdmin):
    list_display = ('id', 'patient', 'admission', 'category', 'amount', 'status', 'created_at')
    list_filter = ('category', 'status', 'payment_mode')
    search_fields = ('patient__patient_code', 'description', 'idempotency_key')


@admin.register(DischargeSummary)
class DischargeSummaryAdmin(ReadOnlyAdmin):
    list_display = ('admission', 'patient', 'discharge_type', 'primary_consultant', 'discharged_at')
    list_filter = ('discharge_type', 'discharge_condition')


@admin.register(DischargeBill)
class DischargeBillAdmin(ReadOnlyAdmin):
    list_display = ('bill_number', 'admission', 'total_charges', 'net_amount', 'total_paid', 'balance')
    search_fields = ('bill_number',)


@admin.register(IPDCounter)
class IPDCounterAdmin(ReadOnlyAdmin):
    list_display = ('date_key', 'counter', 'updated_at')


@admin.register(AuditEvent)
class AuditEventAdmin(ReadOnlyAdmin):
    list_display = ('created_at', 'action', 'object_type', 'object_id', 'user')
    list_filter = ('action', 'object_type')
    search_fields = ('object_id',)
