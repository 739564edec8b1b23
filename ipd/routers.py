"""
URL table for the in-patient department API.

Paths carry no trailing slash (``APPEND_SLASH`` is off).
"""
from django.urls import include, path

from .auth_views import jwt_logout_view, jwt_refresh_view, login_view
from .views import health
from .views.admissions import admission_admit, admission_detail, admissions_list, stats
from .views.beds import bed_create, beds_list
from .views.discharge import discharge, discharge_resume, settlement_preview
from .views.ledger import ledger_list, ledger_record, ledger_status

urlpatterns = [
    # Auth
    path('api/auth/login', login_view, name='login_view'),
    path('api/auth/refresh', jwt_refresh_view, name='jwt_refresh_view'),
    path('api/auth/logout', jwt_logout_view, name='jwt_logout_view'),

    # Ops
    path('healthz', health.healthz, name='healthz'),
    path('', include('django_prometheus.urls')),

    # Beds
    path('api/beds', beds_list, name='beds'),
    path('api/beds/create', bed_create, name='bed-create'),

    # Admissions
    path('api/admissions', admissions_list, name='admissions'),
    path('api/admissions/admit', admission_admit, name='admission-admit'),
    path('api/admissions/<uuid:admission_id>', admission_detail, name='admission-detail'),
    path('api/ipd/stats', stats, name='ipd-stats'),

    # Ledger
    path('api/ledger', ledger_list, name='ledger'),
    path('api/ledger/record', ledger_record, name='ledger-record'),
    path('api/ledger/status', ledger_status, name='ledger-status'),

    # Settlement & discharge
    path('api/admissions/<uuid:admission_id>/settlement/preview', settlement_preview, name='settlement-preview'),
    path('api/admissions/<uuid:admission_id>/discharge', discharge, name='discharge'),
    path('api/admissions/<uuid:admission_id>/discharge/resume', discharge_resume, name='discharge-resume'),
]
