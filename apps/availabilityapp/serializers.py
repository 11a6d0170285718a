from django.utils.translation import gettext_lazy as _
from rest_framework import serializers

from apps.availabilityapp.models import (
    AvailabilityRule,
    BlockedTime,
    BufferTime,
    DateOverrideRule,
    RecurringBlockedTime,
)
from apps.organizersapp.models import EventType


class OrganizerEventTypesField(serializers.PrimaryKeyRelatedField):
    """Event types limited to the requesting organizer"""

    def get_queryset(self):
        organizer = self.context.get("organizer")
        if organizer is None:
            return EventType.objects.none()
        return EventType.objects.filter(organizer=organizer)


def _validate_time_pair(attrs, instance):
    start_time = attrs.get("start_time", getattr(instance, "start_time", None))
    end_time = attrs.get("end_time", getattr(instance, "end_time", None))
    if start_time is not None and start_time == end_time:
        raise serializers.ValidationError(
            {"end_time": _("End time must differ from start time.")}
        )


class AvailabilityRuleSerializer(serializers.ModelSerializer):
    day_of_week_display = serializers.CharField(source="get_day_of_week_display", read_only=True)
    event_types = OrganizerEventTypesField(many=True, required=False)
    event_types_count = serializers.SerializerMethodField()
    spans_midnight = serializers.BooleanField(read_only=True)

    class Meta:
        model = AvailabilityRule
        fields = (
            "id",
            "day_of_week",
            "day_of_week_display",
            "start_time",
            "end_time",
            "event_types",
            "event_types_count",
            "spans_midnight",
            "is_active",
            "created_at",
            "updated_at",
        )
        read_only_fields = ("created_at", "updated_at")

    def get_event_types_count(self, obj):
        return obj.event_types.count()

    def validate(self, attrs):
        _validate_time_pair(attrs, self.instance)
        return attrs


class DateOverrideRuleSerializer(serializers.ModelSerializer):
    event_types = OrganizerEventTypesField(many=True, required=False)
    event_types_count = serializers.SerializerMethodField()
    spans_midnight = serializers.BooleanField(read_only=True)

    class Meta:
        model = DateOverrideRule
        fields = (
            "id",
            "date",
            "is_available",
            "start_time",
            "end_time",
            "event_types",
            "event_types_count",
            "spans_midnight",
            "reason",
            "is_active",
            "created_at",
            "updated_at",
        )
        read_only_fields = ("created_at", "updated_at")

    def get_event_types_count(self, obj):
        return obj.event_types.count()

    def validate(self, attrs):
        """An available override needs a window; an unavailable one drops it"""
        is_available = attrs.get("is_available", getattr(self.instance, "is_available", False))

        if is_available:
            start_time = attrs.get("start_time", getattr(self.instance, "start_time", None))
            end_time = attrs.get("end_time", getattr(self.instance, "end_time", None))
            if start_time is None or end_time is None:
                raise serializers.ValidationError(
                    _("Start and end time are required when the date is available.")
                )
            _validate_time_pair(attrs, self.instance)
        else:
            attrs["start_time"] = None
            attrs["end_time"] = None

        return attrs


class RecurringBlockedTimeSerializer(serializers.ModelSerializer):
    day_of_week_display = serializers.CharField(source="get_day_of_week_display", read_only=True)
    spans_midnight = serializers.BooleanField(read_only=True)

    class Meta:
        model = RecurringBlockedTime
        fields = (
            "id",
            "name",
            "day_of_week",
            "day_of_week_display",
            "start_time",
            "end_time",
            "start_date",
            "end_date",
            "spans_midnight",
            "is_active",
            "created_at",
            "updated_at",
        )
        read_only_fields = ("created_at", "updated_at")

    def validate(self, attrs):
        _validate_time_pair(attrs, self.instance)

        start_date = attrs.get("start_date", getattr(self.instance, "start_date", None))
        end_date = attrs.get("end_date", getattr(self.instance, "end_date", None))
        if start_date and end_date and end_date < start_date:
            raise serializers.ValidationError(
                {"end_date": _("End date must not be before start date.")}
            )
        return attrs


class BlockedTimeSerializer(serializers.ModelSerializer):
    source_display = serializers.CharField(source="get_source_display", read_only=True)

    class Meta:
        model = BlockedTime
        fields = (
            "id",
            "start_datetime",
            "end_datetime",
            "reason",
            "source",
            "source_display",
            "external_id",
            "external_updated_at",
            "is_active",
            "created_at",
            "updated_at",
        )
        # Organizers only enter manual blocks; calendar sync owns the rest
        read_only_fields = (
            "source",
            "external_id",
            "external_updated_at",
            "created_at",
            "updated_at",
        )

    def validate(self, attrs):
        start = attrs.get("start_datetime", getattr(self.instance, "start_datetime", None))
        end = attrs.get("end_datetime", getattr(self.instance, "end_datetime", None))
        if start and end and end <= start:
            raise serializers.ValidationError(
                {"end_datetime": _("End must be after start.")}
            )
        return attrs


class BufferTimeSerializer(serializers.ModelSerializer):
    class Meta:
        model = BufferTime
        fields = (
            "default_buffer_before",
            "default_buffer_after",
            "minimum_gap",
            "slot_interval_minutes",
            "created_at",
            "updated_at",
        )
        read_only_fields = ("created_at", "updated_at")


class TimezoneListField(serializers.Field):
    """Accepts repeated query params or a comma-separated string"""

    def to_internal_value(self, data):
        if isinstance(data, str):
            data = data.split(",")
        return [zone.strip() for zone in data if zone and zone.strip()]

    def to_representation(self, value):
        return value


class CalculatedSlotsQuerySerializer(serializers.Serializer):
    event_type_slug = serializers.SlugField()
    start_date = serializers.DateField()
    end_date = serializers.DateField()
    invitee_timezone = serializers.CharField(required=False, allow_blank=True)
    attendee_count = serializers.IntegerField(required=False, default=1)
    invitee_timezones = TimezoneListField(required=False, default=list)


class PrecomputeRequestSerializer(serializers.Serializer):
    days_ahead = serializers.IntegerField(required=False, allow_null=True, min_value=1, max_value=365)


class TimezoneTestQuerySerializer(serializers.Serializer):
    timezone = serializers.CharField(required=False, allow_blank=True)
    date = serializers.DateField(required=False)
