"""
URL configuration for leads app.
"""
from django.urls import path
from leads.views import AutomationStatsView, CallWebhookView, LeadAutomationStatusView, ProcessLeadView

webhook_urlpatterns = [
    path('calls/', CallWebhookView.as_view(), name='call-webhook'),
]

automation_urlpatterns = [
    path('leads/<int:lead_id>/', LeadAutomationStatusView.as_view(), name='lead-automation-status'),
    path('leads/<int:lead_id>/process/', ProcessLeadView.as_view(), name='lead-process'),
    path('stats/', AutomationStatsView.as_view(), name='automation-stats'),
]
