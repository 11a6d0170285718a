"""
Availability app views for Slotwise
Organizers manage their weekly rules, date overrides, blocked times and
buffers here. Invitees query the calculated slots through a public endpoint.
"""

import logging

from django.utils.translation import gettext_lazy as _
from drf_yasg import openapi
from drf_yasg.utils import swagger_auto_schema
from rest_framework import status, viewsets
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.availabilityapp.filters import (
    AvailabilityRuleFilter,
    BlockedTimeFilter,
    DateOverrideRuleFilter,
    RecurringBlockedTimeFilter,
)
from apps.availabilityapp.models import (
    AvailabilityRule,
    BlockedTime,
    DateOverrideRule,
    RecurringBlockedTime,
)
from apps.availabilityapp.permissions import IsOrganizer, get_request_organizer
from apps.availabilityapp.serializers import (
    AvailabilityRuleSerializer,
    BlockedTimeSerializer,
    BufferTimeSerializer,
    CalculatedSlotsQuerySerializer,
    DateOverrideRuleSerializer,
    PrecomputeRequestSerializer,
    RecurringBlockedTimeSerializer,
    TimezoneTestQuerySerializer,
)
from apps.availabilityapp.services.availability_service import AvailabilityService
from apps.availabilityapp.services.cache_service import AvailabilityCache
from apps.availabilityapp.services.rule_service import RuleService
from apps.availabilityapp.services.stats_service import AvailabilityStatsService
from apps.availabilityapp.services.timezone_service import TimezoneDiagnosticService
from core.exceptions import ValidationException

logger = logging.getLogger(__name__)


class OrganizerRuleViewSet(viewsets.ModelViewSet):
    """
    Base ViewSet for the organizer's own rules.

    Writes go through RuleService so that every create, update and delete
    runs under the organizer mutex and is checked for conflicts.
    """

    permission_classes = [IsAuthenticated, IsOrganizer]
    model = None

    def get_organizer(self):
        return get_request_organizer(self.request)

    def get_queryset(self):
        if getattr(self, "swagger_fake_view", False):
            return self.model.objects.none()
        return self.model.objects.filter(organizer=self.get_organizer())

    def get_serializer_context(self):
        context = super().get_serializer_context()
        context["organizer"] = self.get_organizer()
        return context

    def perform_create(self, serializer):
        serializer.instance = RuleService.create_rule(
            self.get_organizer(), self.model, serializer.validated_data
        )

    def perform_update(self, serializer):
        serializer.instance = RuleService.update_rule(serializer.instance, serializer.validated_data)

    def perform_destroy(self, instance):
        RuleService.delete_rule(instance)


class AvailabilityRuleViewSet(OrganizerRuleViewSet):
    """
    Weekly availability windows.

    Endpoints:
    - GET /api/v1/availability/rules/ - List rules
    - POST /api/v1/availability/rules/ - Create a rule (409 on overlap)
    - GET/PUT/PATCH/DELETE /api/v1/availability/rules/{id}/
    """

    model = AvailabilityRule
    serializer_class = AvailabilityRuleSerializer
    filterset_class = AvailabilityRuleFilter
    ordering_fields = ["day_of_week", "start_time", "created_at"]
    ordering = ["day_of_week", "start_time"]

    def get_queryset(self):
        return super().get_queryset().prefetch_related("event_types")


class DateOverrideRuleViewSet(OrganizerRuleViewSet):
    """Date overrides replace the weekly rules on one date."""

    model = DateOverrideRule
    serializer_class = DateOverrideRuleSerializer
    filterset_class = DateOverrideRuleFilter
    ordering_fields = ["date", "start_time", "created_at"]
    ordering = ["date", "start_time"]

    def get_queryset(self):
        return super().get_queryset().prefetch_related("event_types")


class RecurringBlockedTimeViewSet(OrganizerRuleViewSet):
    model = RecurringBlockedTime
    serializer_class = RecurringBlockedTimeSerializer
    filterset_class = RecurringBlockedTimeFilter
    ordering_fields = ["day_of_week", "start_time", "start_date"]
    ordering = ["day_of_week", "start_time"]


class BlockedTimeViewSet(OrganizerRuleViewSet):
    """
    One-off blocked intervals.

    Blocks synced from an external calendar are listed here but cannot be
    changed or deleted (403).
    """

    model = BlockedTime
    serializer_class = BlockedTimeSerializer
    filterset_class = BlockedTimeFilter
    ordering_fields = ["start_datetime", "end_datetime", "created_at"]
    ordering = ["start_datetime"]


class BufferTimeView(APIView):
    """
    The organizer's buffer policy.

    Endpoints:
    - GET /api/v1/availability/buffer/ - Current policy (defaults until first saved)
    - PATCH /api/v1/availability/buffer/ - Update the policy
    """

    permission_classes = [IsAuthenticated, IsOrganizer]

    def get(self, request):
        buffer_time = RuleService.get_buffer_time(get_request_organizer(request))
        return Response(BufferTimeSerializer(buffer_time).data)

    @swagger_auto_schema(request_body=BufferTimeSerializer)
    def patch(self, request):
        organizer = get_request_organizer(request)
        serializer = BufferTimeSerializer(
            RuleService.get_buffer_time(organizer), data=request.data, partial=True
        )
        serializer.is_valid(raise_exception=True)

        buffer_time = RuleService.update_buffer_time(organizer, serializer.validated_data)
        return Response(BufferTimeSerializer(buffer_time).data)


class CalculatedSlotsView(APIView):
    """
    Public slot query for an organizer.

    Endpoint:
    - GET /api/v1/availability/calculated-slots/{organizer_slug}/

    Query parameters:
        event_type_slug: Event type to book (required)
        start_date, end_date: Organizer-local dates, inclusive
        invitee_timezone: Zone to project slots into (defaults to organizer's)
        invitee_timezones: Comma-separated zones of every invitee
        attendee_count: Number of attendees (default 1)

    Status codes:
        200: Slots calculated
        404: Unknown organizer or event type
        422: Invalid dates, timezone or attendee count
    """

    permission_classes = [AllowAny]

    @swagger_auto_schema(
        manual_parameters=[
            openapi.Parameter("event_type_slug", openapi.IN_QUERY, type=openapi.TYPE_STRING, required=True),
            openapi.Parameter("start_date", openapi.IN_QUERY, type=openapi.TYPE_STRING, format="date"),
            openapi.Parameter("end_date", openapi.IN_QUERY, type=openapi.TYPE_STRING, format="date"),
            openapi.Parameter("invitee_timezone", openapi.IN_QUERY, type=openapi.TYPE_STRING),
            openapi.Parameter("invitee_timezones", openapi.IN_QUERY, type=openapi.TYPE_STRING),
            openapi.Parameter("attendee_count", openapi.IN_QUERY, type=openapi.TYPE_INTEGER),
        ]
    )
    def get(self, request, organizer_slug):
        params = request.query_params.dict()
        if "invitee_timezones" in request.query_params:
            params["invitee_timezones"] = ",".join(request.query_params.getlist("invitee_timezones"))

        serializer = CalculatedSlotsQuerySerializer(data=params)
        if not serializer.is_valid():
            raise ValidationException(_("Invalid availability query."), errors=serializer.errors)

        query = serializer.validated_data
        result = AvailabilityService.calculate_slots(
            organizer_slug=organizer_slug,
            event_type_slug=query["event_type_slug"],
            start_date=query["start_date"],
            end_date=query["end_date"],
            invitee_timezone=query.get("invitee_timezone") or None,
            attendee_count=query["attendee_count"],
            invitee_timezones=query["invitee_timezones"],
        )
        return Response(result)


class AvailabilityStatsView(APIView):
    permission_classes = [IsAuthenticated, IsOrganizer]

    def get(self, request):
        return Response(AvailabilityStatsService.get_stats(get_request_organizer(request)))


class CacheClearView(APIView):
    """Drop every cached slot list of the organizer."""

    permission_classes = [IsAuthenticated, IsOrganizer]

    def post(self, request):
        organizer = get_request_organizer(request)
        AvailabilityCache.clear(organizer.id)
        return Response({"message": _("Availability cache cleared.")})


class CachePrecomputeView(APIView):
    """
    Queue (POST) or inspect (GET) precomputation of the organizer's slots.

    Request body:
        days_ahead: Number of days to warm, defaults to AVAILABILITY_PRECOMPUTE_DAYS
    """

    permission_classes = [IsAuthenticated, IsOrganizer]

    def get(self, request):
        organizer = get_request_organizer(request)
        return Response(
            AvailabilityService.get_precompute_status(organizer.id) or {"status": None}
        )

    @swagger_auto_schema(request_body=PrecomputeRequestSerializer)
    def post(self, request):
        from apps.availabilityapp.tasks import precompute_availability

        serializer = PrecomputeRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        days_ahead = serializer.validated_data.get("days_ahead")

        organizer = get_request_organizer(request)
        AvailabilityService.mark_precompute_queued(organizer.id)
        precompute_availability.delay(str(organizer.id), days_ahead)

        logger.info(f"Queued precompute for organizer {organizer.id} ({days_ahead or 'default'} days)")
        return Response(
            {"message": _("Precomputation queued."), "days_ahead": days_ahead},
            status=status.HTTP_202_ACCEPTED,
        )


class CachePrecomputeCancelView(APIView):
    permission_classes = [IsAuthenticated, IsOrganizer]

    def post(self, request):
        organizer = get_request_organizer(request)
        if not AvailabilityService.cancel_precompute(organizer.id):
            return Response(
                {"error": "not_running", "message": _("No precomputation is in progress.")},
                status=status.HTTP_409_CONFLICT,
            )
        return Response({"message": _("Precomputation cancellation requested.")})


class TimezoneTestView(APIView):
    """
    Timezone diagnostic for the organizer.

    Query parameters:
        timezone: Zone to compare with the organizer's (defaults to it)
        date: Date to inspect (defaults to today)
    """

    permission_classes = [IsAuthenticated, IsOrganizer]

    def get(self, request):
        serializer = TimezoneTestQuerySerializer(data=request.query_params)
        serializer.is_valid(raise_exception=True)

        result = TimezoneDiagnosticService.diagnose(
            get_request_organizer(request),
            zone_name=serializer.validated_data.get("timezone") or None,
            target_date=serializer.validated_data.get("date"),
        )
        return Response(result)
