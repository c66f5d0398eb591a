"""
Data models for Portal Gateway.
"""
from django.db import models
from django.utils import timezone


class Tenant(models.Model):
    """
    An isolated customer account owning its own leads and portal configuration.
    """

    name = models.CharField(max_length=200)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['name']

    def __str__(self):
        return self.name


class Lead(models.Model):
    """
    A prospective contact guided through call confirmation and portal entry.
    """

    class Status(models.TextChoices):
        NEW = 'NEW', 'New'
        CALLING = 'CALLING', 'Calling'
        CONFIRMED = 'CONFIRMED', 'Confirmed'
        ENTRY_IN_PROGRESS = 'ENTRY_IN_PROGRESS', 'Entry In Progress'
        ENTERED = 'ENTERED', 'Entered'
        ENTRY_FAILED = 'ENTRY_FAILED', 'Entry Failed'
        CALL_FAILED = 'CALL_FAILED', 'Call Failed'

    tenant = models.ForeignKey(Tenant, on_delete=models.CASCADE, related_name='leads')
    first_name = models.CharField(max_length=100, blank=True, default='')
    last_name = models.CharField(max_length=100, blank=True, default='')
    email = models.CharField(max_length=254, blank=True, default='')
    phone = models.CharField(max_length=40, blank=True, default='')
    alternate_phone = models.CharField(max_length=40, blank=True, default='')
    company = models.CharField(max_length=200, blank=True, default='')
    address = models.CharField(max_length=255, blank=True, default='')
    city = models.CharField(max_length=100, blank=True, default='')
    state = models.CharField(max_length=100, blank=True, default='')
    zip_code = models.CharField(max_length=20, blank=True, default='')
    country = models.CharField(max_length=100, blank=True, default='')
    job_title = models.CharField(max_length=200, blank=True, default='')
    area_of_study = models.CharField(max_length=200, blank=True, default='')
    source = models.CharField(max_length=100, blank=True, default='')
    custom_data = models.JSONField(default=dict, blank=True)
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.NEW,
        db_index=True
    )
    tcpa_consent = models.BooleanField(default=False)
    consent_recording_url = models.CharField(max_length=500, null=True, blank=True)
    last_call_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['tenant', 'status'], name='leads_lead_tenant__7c1e2a_idx'),
        ]

    def __str__(self):
        return f"Lead {self.id} - {self.status}"


class LeadStatusUpdate(models.Model):
    """History of lead status transitions."""

    lead = models.ForeignKey(Lead, on_delete=models.CASCADE, related_name='status_updates')
    from_status = models.CharField(max_length=20, choices=Lead.Status.choices)
    to_status = models.CharField(max_length=20, choices=Lead.Status.choices)
    reason = models.CharField(max_length=200)
    notes = models.TextField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['lead', 'created_at', 'id']

    def __str__(self):
        return f"Lead {self.lead_id}: {self.from_status} -> {self.to_status}"


class PortalConfig(models.Model):
    """
    Per-tenant configuration of an external form portal.
    Deactivated rather than deleted so automation logs keep their link.
    """

    tenant = models.ForeignKey(Tenant, on_delete=models.CASCADE, related_name='portal_configs')
    portal_id = models.CharField(max_length=100)
    portal_url = models.URLField(max_length=500)
    field_mapping = models.JSONField(default=dict, blank=True)
    default_values = models.JSONField(default=dict, blank=True)
    auto_submit = models.BooleanField(default=True)
    retry_attempts = models.PositiveIntegerField(default=3)
    retry_delay_minutes = models.PositiveIntegerField(default=5)
    is_active = models.BooleanField(default=True, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']
        constraints = [
            models.UniqueConstraint(fields=['tenant', 'portal_id'], name='unique_tenant_portal'),
        ]

    def __str__(self):
        state = 'active' if self.is_active else 'inactive'
        return f"{self.portal_id} for tenant {self.tenant_id} ({state})"


class QueueItem(models.Model):
    """
    Pending or in-flight portal submission work for a single lead.
    The one-to-one lead reference keeps at most one item per lead.
    """

    class Status(models.TextChoices):
        QUEUED = 'QUEUED', 'Queued'
        PROCESSING = 'PROCESSING', 'Processing'
        COMPLETED = 'COMPLETED', 'Completed'
        FAILED = 'FAILED', 'Failed'

    lead = models.OneToOneField(Lead, on_delete=models.CASCADE, related_name='queue_item')
    priority = models.IntegerField(default=5)
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.QUEUED,
        db_index=True
    )
    attempt_count = models.PositiveIntegerField(default=0)
    max_attempts = models.PositiveIntegerField(default=3)
    next_attempt_at = models.DateTimeField(null=True, blank=True)
    last_error = models.TextField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['priority', 'created_at', 'id']
        indexes = [
            models.Index(fields=['status', 'priority', 'created_at'], name='leads_queue_status_4b8d1f_idx'),
        ]

    def __str__(self):
        return f"Queue item {self.id} for Lead {self.lead_id} - {self.status}"


class AutomationLog(models.Model):
    """
    Records each attempt to submit a lead to a portal.
    Append-only: an entry is completed exactly once and never changed after.
    """

    class Status(models.TextChoices):
        IN_PROGRESS = 'IN_PROGRESS', 'In Progress'
        SUCCESS = 'SUCCESS', 'Success'
        FAILED = 'FAILED', 'Failed'

    lead = models.ForeignKey(Lead, on_delete=models.CASCADE, related_name='automation_logs')
    portal_config = models.ForeignKey(
        PortalConfig,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='automation_logs'
    )
    attempt_number = models.PositiveIntegerField()
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.IN_PROGRESS,
        db_index=True
    )
    constructed_url = models.TextField(null=True, blank=True)
    success = models.BooleanField(default=False)
    processing_time_ms = models.PositiveIntegerField(null=True, blank=True)
    portal_response_code = models.PositiveIntegerField(null=True, blank=True)
    portal_response_message = models.CharField(max_length=50, null=True, blank=True)
    response_data = models.JSONField(null=True, blank=True)
    error_message = models.TextField(null=True, blank=True)
    screenshot_path = models.CharField(max_length=500, null=True, blank=True)
    queued_at = models.DateTimeField(default=timezone.now, db_index=True)
    completed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ['-queued_at', '-id']
        indexes = [
            models.Index(fields=['lead', 'attempt_number'], name='leads_autom_lead_id_9e3a5c_idx'),
        ]

    def __str__(self):
        return f"Attempt {self.attempt_number} for Lead {self.lead_id} - {self.status}"


class CallRecord(models.Model):
    """
    State of one voice-call confirmation, keyed by the provider's call id.
    """

    class Status(models.TextChoices):
        INITIATED = 'INITIATED', 'Initiated'
        RINGING = 'RINGING', 'Ringing'
        ANSWERED = 'ANSWERED', 'Answered'
        COMPLETED = 'COMPLETED', 'Completed'
        FAILED = 'FAILED', 'Failed'

    call_id = models.CharField(max_length=100, unique=True)
    tenant = models.ForeignKey(Tenant, on_delete=models.CASCADE, related_name='call_records')
    lead = models.ForeignKey(Lead, on_delete=models.CASCADE, related_name='call_records')
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.INITIATED
    )
    provider_status = models.CharField(max_length=50, null=True, blank=True)
    transcript = models.TextField(null=True, blank=True)
    recording_url = models.CharField(max_length=500, null=True, blank=True)
    tcpa_consent = models.BooleanField(default=False)
    ended_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f"Call {self.call_id} for Lead {self.lead_id} - {self.status}"
