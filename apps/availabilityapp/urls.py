from django.urls import path
from rest_framework.routers import DefaultRouter

from apps.availabilityapp import views

router = DefaultRouter()
router.register(r"rules", views.AvailabilityRuleViewSet, basename="availability-rule")
router.register(r"overrides", views.DateOverrideRuleViewSet, basename="date-override")
router.register(r"recurring-blocks", views.RecurringBlockedTimeViewSet, basename="recurring-block")
router.register(r"blocked", views.BlockedTimeViewSet, basename="blocked-time")

urlpatterns = [
    path("buffer/", views.BufferTimeView.as_view(), name="buffer-time"),
    # Public slot query
    path(
        "calculated-slots/<slug:organizer_slug>/",
        views.CalculatedSlotsView.as_view(),
        name="calculated-slots",
    ),
    path("stats/", views.AvailabilityStatsView.as_view(), name="availability-stats"),
    # Cache management
    path("cache/clear/", views.CacheClearView.as_view(), name="availability-cache-clear"),
    path(
        "cache/precompute/",
        views.CachePrecomputeView.as_view(),
        name="availability-cache-precompute",
    ),
    path(
        "cache/precompute/cancel/",
        views.CachePrecomputeCancelView.as_view(),
        name="availability-cache-precompute-cancel",
    ),
    path("test/timezone/", views.TimezoneTestView.as_view(), name="availability-timezone-test"),
]

urlpatterns += router.urls
