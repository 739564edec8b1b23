import uuid

import django.contrib.auth.models
import django.contrib.auth.validators
import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models

ROOM_CATEGORIES = [
    ('GENERAL', 'General ward'),
    ('PRIVATE', 'Private room'),
    ('ICU', 'Intensive care'),
    ('EMERGENCY', 'Emergency'),
]
PAYMENT_MODES = [
    ('CASH', 'Cash'),
    ('CARD', 'Card'),
    ('UPI', 'UPI'),
    ('BANK_TRANSFER', 'Bank transfer'),
    ('INSURANCE', 'Insurance'),
]
LEDGER_CATEGORIES = [
    ('CONSULTATION', 'Consultation'),
    ('NURSING', 'Nursing'),
    ('MEDICINE', 'Medicine'),
    ('DIAGNOSTIC', 'Diagnostic'),
    ('PROCEDURE', 'Procedure'),
    ('ACCOMMODATION', 'Accommodation'),
    ('OTHER', 'Other'),
    ('IPD_PAYMENT', 'IPD payment'),
    ('IPD_ADVANCE', 'IPD advance'),
    ('REFUND', 'Refund'),
]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('auth', '0012_alter_user_first_name_max_length'),
    ]

    operations = [
        migrations.CreateModel(
            name='User',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('password', models.CharField(max_length=128, verbose_name='password')),
                ('last_login', models.DateTimeField(blank=True, null=True, verbose_name='last login')),
                ('is_superuser', models.BooleanField(default=False, help_text='Designates that this user has all permissions without explicitly assigning them.', verbose_name='superuser status')),
                ('username', models.CharField(error_messages={'unique': 'A user with that username already exists.'}, help_text='Required. 150 characters or fewer. Letters, digits and @/./+/-/_ only.', max_length=150, unique=True, validators=[django.contrib.auth.validators.UnicodeUsernameValidator()], verbose_name='username')),
                ('first_name', models.CharField(blank=True, max_length=150, verbose_name='first name')),
                ('last_name', models.CharField(blank=True, max_length=150, verbose_name='last name')),
                ('email', models.EmailField(blank=True, max_length=254, verbose_name='email address')),
                ('is_staff', models.BooleanField(default=False, help_text='Designates whether the user can log into this admin site.', verbose_name='staff status')),
                ('is_active', models.BooleanField(default=True, help_text='Designates whether this user should be treated as active. Unselect this instead of deleting accounts.', verbose_name='active')),
                ('date_joined', models.DateTimeField(default=django.utils.timezone.now, verbose_name='date joined')),
                ('role', models.CharField(choices=[('reception', 'Front desk'), ('nurse', 'Nurse'), ('billing', 'Billing'), ('admin', 'Administrator'), ('super', 'Super Administrator')], default='nurse', max_length=10)),
                ('groups', models.ManyToManyField(blank=True, help_text='The groups this user belongs to. A user will get all permissions granted to each of their groups.', related_name='user_set', related_query_name='user', to='auth.group', verbose_name='groups')),
                ('user_permissions', models.ManyToManyField(blank=True, help_text='Specific permissions for this user.', related_name='user_set', related_query_name='user', to='auth.permission', verbose_name='user permissions')),
            ],
            options={
                'verbose_name': 'user',
                'verbose_name_plural': 'users',
                'abstract': False,
            },
            managers=[
                ('objects', django.contrib.auth.models.UserManager()),
            ],
        ),
        migrations.CreateModel(
            name='Patient',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('patient_code', models.CharField(max_length=32, unique=True)),
                ('first_name', models.CharField(max_length=100)),
                ('last_name', models.CharField(blank=True, max_length=100)),
                ('phone', models.CharField(blank=True, max_length=20)),
                ('assigned_doctor', models.CharField(blank=True, max_length=255)),
                ('assigned_department', models.CharField(blank=True, max_length=255)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
            ],
        ),
        migrations.CreateModel(
            name='Bed',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('bed_number', models.CharField(max_length=20, unique=True)),
                ('room_category', models.CharField(choices=ROOM_CATEGORIES, max_length=16)),
                ('daily_rate', models.DecimalField(decimal_places=2, default=0, max_digits=12)),
                ('status', models.CharField(choices=[('AVAILABLE', 'Available'), ('OCCUPIED', 'Occupied')], db_index=True, default='AVAILABLE', max_length=16)),
                ('occupied_by', models.UUIDField(blank=True, null=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'ordering': ['bed_number'],
                'constraints': [
                    models.CheckConstraint(condition=models.Q(('room_category__in', ['GENERAL', 'PRIVATE', 'ICU', 'EMERGENCY'])), name='ipd_bed_room_category_valid'),
                    models.CheckConstraint(condition=models.Q(('status__in', ['AVAILABLE', 'OCCUPIED'])), name='ipd_bed_status_valid'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Admission',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('ipd_number', models.CharField(max_length=32, unique=True)),
                ('room_category', models.CharField(choices=ROOM_CATEGORIES, max_length=16)),
                ('department', models.CharField(blank=True, max_length=255)),
                ('daily_rate', models.DecimalField(decimal_places=2, default=0, max_digits=12)),
                ('admitted_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('status', models.CharField(choices=[('ACTIVE', 'Active'), ('DISCHARGED', 'Discharged')], db_index=True, default='ACTIVE', max_length=16)),
                ('total_amount', models.DecimalField(decimal_places=2, default=0, max_digits=12)),
                ('amount_paid', models.DecimalField(decimal_places=2, default=0, max_digits=12)),
                ('balance_amount', models.DecimalField(decimal_places=2, default=0, max_digits=12)),
                ('stay_days', models.PositiveIntegerField(blank=True, null=True)),
                ('discharged_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('bed', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='admissions', to='ipd.bed')),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
                ('patient', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='admissions', to='ipd.patient')),
            ],
            options={
                'ordering': ['-admitted_at'],
                'constraints': [
                    models.UniqueConstraint(condition=models.Q(('status', 'ACTIVE')), fields=('patient',), name='ipd_one_active_admission_per_patient'),
                    models.UniqueConstraint(condition=models.Q(('status', 'ACTIVE')), fields=('bed',), name='ipd_one_active_admission_per_bed'),
                    models.CheckConstraint(condition=models.Q(('room_category__in', ['GENERAL', 'PRIVATE', 'ICU', 'EMERGENCY'])), name='ipd_admission_room_category_valid'),
                ],
            },
        ),
        migrations.CreateModel(
            name='LedgerEntry',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('category', models.CharField(choices=LEDGER_CATEGORIES, max_length=16)),
                ('amount', models.DecimalField(decimal_places=2, max_digits=12)),
                ('payment_mode', models.CharField(choices=PAYMENT_MODES, default='CASH', max_length=16)),
                ('status', models.CharField(choices=[('PENDING', 'Pending'), ('COMPLETED', 'Completed'), ('CANCELLED', 'Cancelled')], default='COMPLETED', max_length=16)),
                ('description', models.CharField(blank=True, max_length=255)),
                ('idempotency_key', models.CharField(blank=True, max_length=128, null=True, unique=True)),
                ('created_at', models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ('admission', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='ledger_entries', to='ipd.admission')),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
                ('patient', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='ledger_entries', to='ipd.patient')),
            ],
            options={
                'ordering': ['created_at', 'id'],
                'indexes': [
                    models.Index(fields=['patient', 'status', 'created_at'], name='ipd_ledger_patient_idx'),
                ],
                'constraints': [
                    models.CheckConstraint(condition=models.Q(('category__in', [c for c, _ in LEDGER_CATEGORIES])), name='ipd_ledger_category_valid'),
                ],
            },
        ),
        migrations.CreateModel(
            name='DischargeSummary',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('discharge_type', models.CharField(choices=[('ROUTINE', 'Routine'), ('LAMA', 'Left against medical advice'), ('TRANSFER', 'Transfer'), ('EXPIRED', 'Expired'), ('ABSCOND', 'Absconded')], default='ROUTINE', max_length=16)),
                ('transfer_hospital', models.CharField(blank=True, max_length=255)),
                ('discharge_condition', models.CharField(choices=[('STABLE', 'Stable'), ('IMPROVED', 'Improved'), ('SAME', 'Same'), ('DETERIORATED', 'Deteriorated')], default='STABLE', max_length=16)),
                ('final_diagnosis', models.TextField()),
                ('primary_consultant', models.CharField(max_length=255)),
                ('chief_complaints', models.TextField(blank=True)),
                ('hopi', models.TextField(blank=True)),
                ('past_history', models.TextField(blank=True)),
                ('investigations', models.TextField(blank=True)),
                ('course_of_stay', models.TextField(blank=True)),
                ('treatment_summary', models.TextField(blank=True)),
                ('discharge_medication', models.TextField(blank=True)),
                ('follow_up_on', models.TextField(blank=True)),
                ('discharge_notes', models.TextField(blank=True)),
                ('attendant_name', models.CharField(max_length=255)),
                ('attendant_relationship', models.CharField(blank=True, max_length=64)),
                ('attendant_contact', models.CharField(blank=True, max_length=32)),
                ('documents_handed_over', models.BooleanField(default=False)),
                ('patient_consent', models.BooleanField(default=False)),
                ('discharged_at', models.DateTimeField()),
                ('billing_inputs', models.JSONField(blank=True, default=dict)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('admission', models.OneToOneField(on_delete=django.db.models.deletion.PROTECT, related_name='discharge_summary', to='ipd.admission')),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
                ('patient', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='discharge_summaries', to='ipd.patient')),
            ],
        ),
        migrations.CreateModel(
            name='DischargeBill',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('bill_number', models.CharField(max_length=48, unique=True)),
                ('existing_charges', models.DecimalField(decimal_places=2, max_digits=12)),
                ('line_items', models.JSONField(blank=True, default=list)),
                ('additional_charges', models.DecimalField(decimal_places=2, max_digits=12)),
                ('total_charges', models.DecimalField(decimal_places=2, max_digits=12)),
                ('discount', models.DecimalField(decimal_places=2, default=0, max_digits=12)),
                ('discount_reason', models.CharField(blank=True, max_length=255)),
                ('insurance_covered', models.DecimalField(decimal_places=2, default=0, max_digits=12)),
                ('net_amount', models.DecimalField(decimal_places=2, max_digits=12)),
                ('prior_payments', models.DecimalField(decimal_places=2, max_digits=12)),
                ('final_payment', models.DecimalField(decimal_places=2, default=0, max_digits=12)),
                ('payment_mode', models.CharField(choices=PAYMENT_MODES, default='CASH', max_length=16)),
                ('total_paid', models.DecimalField(decimal_places=2, max_digits=12)),
                ('balance', models.DecimalField(decimal_places=2, max_digits=12)),
                ('stay_days', models.PositiveIntegerField()),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('admission', models.OneToOneField(on_delete=django.db.models.deletion.PROTECT, related_name='discharge_bill', to='ipd.admission')),
                ('summary', models.OneToOneField(on_delete=django.db.models.deletion.PROTECT, related_name='bill', to='ipd.dischargesummary')),
            ],
        ),
        migrations.CreateModel(
            name='IPDCounter',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('date_key', models.CharField(max_length=8, unique=True)),
                ('counter', models.PositiveIntegerField(default=0)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
        ),
        migrations.CreateModel(
            name='AuditEvent',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('action', models.CharField(max_length=64)),
                ('object_type', models.CharField(blank=True, max_length=64, null=True)),
                ('object_id', models.CharField(blank=True, max_length=64, null=True)),
                ('detail', models.JSONField(blank=True, default=dict)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('user', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'indexes': [
                    models.Index(fields=['action', 'created_at'], name='ipd_audit_action_idx'),
                    models.Index(fields=['object_type', 'object_id', 'created_at'], name='ipd_audit_object_idx'),
                ],
            },
        ),
    ]
