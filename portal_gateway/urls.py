"""
URL configuration for portal_gateway project.
"""
from django.contrib import admin
from django.urls import path, include

from leads.urls import automation_urlpatterns, webhook_urlpatterns

urlpatterns = [
    path('admin/', admin.site.urls),
    path('webhooks/', include(webhook_urlpatterns)),
    path('automation/', include(automation_urlpatterns)),
]
