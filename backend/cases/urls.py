"""
Cases app URL configuration.

All routes are registered under the ``/api/`` prefix.

Route Hierarchy
---------------
  /api/cases/                              → list / create
  /api/cases/{id}/                         → retrieve
  /api/cases/caseworkers/                  → available caseworkers

  ── Workflow @actions ───────────────────────────────────────────
  POST /api/cases/{id}/assign/
  POST /api/cases/{id}/reassign/
  POST /api/cases/{id}/accept/
  POST /api/cases/{id}/reject/
  POST /api/cases/{id}/request-completion/
  POST /api/cases/{id}/approve/
  POST /api/cases/{id}/reject-completion/

  ── Sub-resource @actions ───────────────────────────────────────
  GET  /api/cases/{id}/logs/
  POST /api/cases/{id}/logs/
"""

from rest_framework.routers import DefaultRouter

from .views import CaseViewSet

router = DefaultRouter()
router.register(
    prefix=r"cases",
    viewset=CaseViewSet,
    basename="case",
)

urlpatterns = router.urls
