# Generated migration for Portal Gateway models

from django.db import migrations, models
import django.db.models.deletion
import django.utils.timezone


LEAD_STATUS_CHOICES = [
    ('NEW', 'New'),
    ('CALLING', 'Calling'),
    ('CONFIRMED', 'Confirmed'),
    ('ENTRY_IN_PROGRESS', 'Entry In Progress'),
    ('ENTERED', 'Entered'),
    ('ENTRY_FAILED', 'Entry Failed'),
    ('CALL_FAILED', 'Call Failed'),
]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
    ]

    operations = [
        migrations.CreateModel(
            name='Tenant',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=200)),
                ('is_active', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'ordering': ['name'],
            },
        ),
        migrations.CreateModel(
            name='Lead',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('first_name', models.CharField(blank=True, default='', max_length=100)),
                ('last_name', models.CharField(blank=True, default='', max_length=100)),
                ('email', models.CharField(blank=True, default='', max_length=254)),
                ('phone', models.CharField(blank=True, default='', max_length=40)),
                ('alternate_phone', models.CharField(blank=True, default='', max_length=40)),
                ('company', models.CharField(blank=True, default='', max_length=200)),
                ('address', models.CharField(blank=True, default='', max_length=255)),
                ('city', models.CharField(blank=True, default='', max_length=100)),
                ('state', models.CharField(blank=True, default='', max_length=100)),
                ('zip_code', models.CharField(blank=True, default='', max_length=20)),
                ('country', models.CharField(blank=True, default='', max_length=100)),
                ('job_title', models.CharField(blank=True, default='', max_length=200)),
                ('area_of_study', models.CharField(blank=True, default='', max_length=200)),
                ('source', models.CharField(blank=True, default='', max_length=100)),
                ('custom_data', models.JSONField(blank=True, default=dict)),
                ('status', models.CharField(choices=LEAD_STATUS_CHOICES, db_index=True, default='NEW', max_length=20)),
                ('tcpa_consent', models.BooleanField(default=False)),
                ('consent_recording_url', models.CharField(blank=True, max_length=500, null=True)),
                ('last_call_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('tenant', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='leads', to='leads.tenant')),
            ],
            options={
                'ordering': ['-created_at'],
            },
        ),
        migrations.CreateModel(
            name='LeadStatusUpdate',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('from_status', models.CharField(choices=LEAD_STATUS_CHOICES, max_length=20)),
                ('to_status', models.CharField(choices=LEAD_STATUS_CHOICES, max_length=20)),
                ('reason', models.CharField(max_length=200)),
                ('notes', models.TextField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('lead', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='status_updates', to='leads.lead')),
            ],
            options={
                'ordering': ['lead', 'created_at', 'id'],
            },
        ),
        migrations.CreateModel(
            name='PortalConfig',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('portal_id', models.CharField(max_length=100)),
                ('portal_url', models.URLField(max_length=500)),
                ('field_mapping', models.JSONField(blank=True, default=dict)),
                ('default_values', models.JSONField(blank=True, default=dict)),
                ('auto_submit', models.BooleanField(default=True)),
                ('retry_attempts', models.PositiveIntegerField(default=3)),
                ('retry_delay_minutes', models.PositiveIntegerField(default=5)),
                ('is_active', models.BooleanField(db_index=True, default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('tenant', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='portal_configs', to='leads.tenant')),
            ],
            options={
                'ordering': ['-created_at'],
            },
        ),
        migrations.CreateModel(
            name='QueueItem',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('priority', models.IntegerField(default=5)),
                ('status', models.CharField(choices=[('QUEUED', 'Queued'), ('PROCESSING', 'Processing'), ('COMPLETED', 'Completed'), ('FAILED', 'Failed')], db_index=True, default='QUEUED', max_length=20)),
                ('attempt_count', models.PositiveIntegerField(default=0)),
                ('max_attempts', models.PositiveIntegerField(default=3)),
                ('next_attempt_at', models.DateTimeField(blank=True, null=True)),
                ('last_error', models.TextField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('lead', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='queue_item', to='leads.lead')),
            ],
            options={
                'ordering': ['priority', 'created_at', 'id'],
            },
        ),
        migrations.CreateModel(
            name='AutomationLog',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('attempt_number', models.PositiveIntegerField()),
                ('status', models.CharField(choices=[('IN_PROGRESS', 'In Progress'), ('SUCCESS', 'Success'), ('FAILED', 'Failed')], db_index=True, default='IN_PROGRESS', max_length=20)),
                ('constructed_url', models.TextField(blank=True, null=True)),
                ('success', models.BooleanField(default=False)),
                ('processing_time_ms', models.PositiveIntegerField(blank=True, null=True)),
                ('portal_response_code', models.PositiveIntegerField(blank=True, null=True)),
                ('portal_response_message', models.CharField(blank=True, max_length=50, null=True)),
                ('response_data', models.JSONField(blank=True, null=True)),
                ('error_message', models.TextField(blank=True, null=True)),
                ('screenshot_path', models.CharField(blank=True, max_length=500, null=True)),
                ('queued_at', models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ('completed_at', models.DateTimeField(blank=True, null=True)),
                ('lead', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='automation_logs', to='leads.lead')),
                ('portal_config', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='automation_logs', to='leads.portalconfig')),
            ],
            options={
                'ordering': ['-queued_at', '-id'],
            },
        ),
        migrations.CreateModel(
            name='CallRecord',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('call_id', models.CharField(max_length=100, unique=True)),
                ('status', models.CharField(choices=[('INITIATED', 'Initiated'), ('RINGING', 'Ringing'), ('ANSWERED', 'Answered'), ('COMPLETED', 'Completed'), ('FAILED', 'Failed')], default='INITIATED', max_length=20)),
                ('provider_status', models.CharField(blank=True, max_length=50, null=True)),
                ('transcript', models.TextField(blank=True, null=True)),
                ('recording_url', models.CharField(blank=True, max_length=500, null=True)),
                ('tcpa_consent', models.BooleanField(default=False)),
                ('ended_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('lead', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='call_records', to='leads.lead')),
                ('tenant', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='call_records', to='leads.tenant')),
            ],
            options={
                'ordering': ['-created_at'],
            },
        ),
        migrations.AddIndex(
            model_name='lead',
            index=models.Index(fields=['tenant', 'status'], name='leads_lead_tenant__7c1e2a_idx'),
        ),
        migrations.AddConstraint(
            model_name='portalconfig',
            constraint=models.UniqueConstraint(fields=('tenant', 'portal_id'), name='unique_tenant_portal'),
        ),
        migrations.AddIndex(
            model_name='queueitem',
            index=models.Index(fields=['status', 'priority', 'created_at'], name='leads_queue_status_4b8d1f_idx'),
        ),
        migrations.AddIndex(
            model_name='automationlog',
            index=models.Index(fields=['lead', 'attempt_number'], name='leads_autom_lead_id_9e3a5c_idx'),
        ),
    ]
