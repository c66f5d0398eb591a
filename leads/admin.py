"""
Django admin configuration for leads app.
"""
from django.contrib import admin, messages
from leads.models import AutomationLog, CallRecord, Lead, LeadStatusUpdate, PortalConfig, QueueItem, Tenant
from leads.services.portal_config import deactivate_portal_config


class LeadStatusUpdateInline(admin.TabularInline):
    """Inline display of status history for a lead."""
    model = LeadStatusUpdate
    extra = 0
    readonly_fields = ('from_status', 'to_status', 'reason', 'notes', 'created_at')
    can_delete = False


class AutomationLogInline(admin.TabularInline):
    """Inline display of portal submission attempts for a lead."""
    model = AutomationLog
    extra = 0
    fields = ('attempt_number', 'status', 'portal_response_code', 'portal_response_message', 'queued_at', 'completed_at')
    readonly_fields = fields
    can_delete = False


@admin.register(Tenant)
class TenantAdmin(admin.ModelAdmin):
    list_display = ('id', 'name', 'is_active', 'created_at')
    list_filter = ('is_active',)
    search_fields = ('name',)


@admin.register(Lead)
class LeadAdmin(admin.ModelAdmin):
    """Admin interface for Lead model."""

    list_display = ('id', 'tenant', 'first_name', 'last_name', 'email', 'status', 'updated_at')
    list_filter = ('status', 'tenant', 'tcpa_consent')
    search_fields = ('id', 'first_name', 'last_name', 'email', 'phone')
    readonly_fields = ('status', 'tcpa_consent', 'consent_recording_url', 'last_call_at', 'created_at', 'updated_at')

    fieldsets = (
        ('Status', {
            'fields': ('tenant', 'status', 'tcpa_consent', 'consent_recording_url', 'last_call_at')
        }),
        ('Contact', {
            'fields': ('first_name', 'last_name', 'email', 'phone', 'alternate_phone')
        }),
        ('Details', {
            'fields': ('company', 'job_title', 'address', 'city', 'state', 'zip_code', 'country',
                       'area_of_study', 'source', 'custom_data'),
            'classes': ('collapse',)
        }),
        ('Timestamps', {
            'fields': ('created_at', 'updated_at')
        }),
    )

    inlines = [LeadStatusUpdateInline, AutomationLogInline]


@admin.register(PortalConfig)
class PortalConfigAdmin(admin.ModelAdmin):
    """
    Admin interface for PortalConfig model.
    Configurations are deactivated, never deleted, so automation logs keep their link.
    """

    list_display = ('id', 'tenant', 'portal_id', 'portal_url', 'auto_submit', 'is_active', 'updated_at')
    list_filter = ('is_active', 'auto_submit', 'tenant')
    search_fields = ('portal_id', 'portal_url')
    readonly_fields = ('created_at', 'updated_at')
    actions = ['deactivate']

    @admin.action(description='Deactivate selected portal configurations')
    def deactivate(self, request, queryset):
        for config in queryset.filter(is_active=True):
            deactivate_portal_config(config)
        self.message_user(request, 'Selected configurations deactivated', messages.SUCCESS)

    def get_actions(self, request):
        actions = super().get_actions(request)
        actions.pop('delete_selected', None)
        return actions

    def has_delete_permission(self, request, obj=None):
        """Disable deletion; deactivate instead."""
        return False


@admin.register(QueueItem)
class QueueItemAdmin(admin.ModelAdmin):
    list_display = ('id', 'lead', 'priority', 'status', 'attempt_count', 'max_attempts', 'next_attempt_at')
    list_filter = ('status',)
    search_fields = ('lead__id',)
    readonly_fields = ('lead', 'status', 'attempt_count', 'last_error', 'created_at', 'updated_at')


@admin.register(AutomationLog)
class AutomationLogAdmin(admin.ModelAdmin):
    """Admin interface for AutomationLog model (read-only audit trail)."""

    list_display = ('id', 'lead', 'attempt_number', 'status', 'portal_response_code',
                    'portal_response_message', 'processing_time_ms', 'queued_at')
    list_filter = ('status', 'success', 'queued_at')
    search_fields = ('lead__id', 'error_message')
    readonly_fields = ('lead', 'portal_config', 'attempt_number', 'status', 'constructed_url', 'success',
                       'processing_time_ms', 'portal_response_code', 'portal_response_message',
                       'response_data', 'error_message', 'screenshot_path', 'queued_at', 'completed_at')

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(CallRecord)
class CallRecordAdmin(admin.ModelAdmin):
    list_display = ('call_id', 'tenant', 'lead', 'status', 'provider_status', 'tcpa_consent', 'ended_at')
    list_filter = ('status', 'tcpa_consent')
    search_fields = ('call_id', 'lead__id')
    readonly_fields = ('call_id', 'tenant', 'lead', 'status', 'provider_status', 'transcript',
                       'recording_url', 'tcpa_consent', 'ended_at', 'created_at', 'updated_at')

    def has_add_permission(self, request):
        return False
