"""
Core app URL configuration.

Endpoint Map
------------
GET  /api/core/notifications/              List notifications for the authenticated user.
POST /api/core/notifications/{id}/read/    Mark a single notification as read.
POST /api/core/notifications/read-all/     Mark every notification as read.
"""

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from . import views

app_name = "core"

router = DefaultRouter()
router.register(
    prefix=r"notifications",
    viewset=views.NotificationViewSet,
    basename="notification",
)

urlpatterns = [
    path("", include(router.urls)),
]
