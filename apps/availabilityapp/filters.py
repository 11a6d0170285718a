import django_filters
from django.db.models import Q
from django.utils.translation import gettext_lazy as _

from apps.availabilityapp.constants import BLOCKED_TIME_SOURCE_CHOICES, WEEKDAY_CHOICES
from apps.availabilityapp.models import (
    AvailabilityRule,
    BlockedTime,
    DateOverrideRule,
    RecurringBlockedTime,
)


class AvailabilityRuleFilter(django_filters.FilterSet):
    day_of_week = django_filters.ChoiceFilter(choices=WEEKDAY_CHOICES)
    is_active = django_filters.BooleanFilter()
    event_type_id = django_filters.UUIDFilter(method="filter_by_event_type")

    class Meta:
        model = AvailabilityRule
        fields = ["day_of_week", "is_active", "event_type_id"]

    def filter_by_event_type(self, queryset, name, value):
        """Rules scoped to the event type plus rules that apply to every type"""
        return (
            queryset.filter(event_types__id=value) | queryset.filter(event_types__isnull=True)
        ).distinct()


class DateOverrideRuleFilter(django_filters.FilterSet):
    date_from = django_filters.DateFilter(field_name="date", lookup_expr="gte")
    date_to = django_filters.DateFilter(field_name="date", lookup_expr="lte")
    is_available = django_filters.BooleanFilter()
    is_active = django_filters.BooleanFilter()

    class Meta:
        model = DateOverrideRule
        fields = ["date_from", "date_to", "is_available", "is_active"]


class RecurringBlockedTimeFilter(django_filters.FilterSet):
    day_of_week = django_filters.ChoiceFilter(choices=WEEKDAY_CHOICES)
    is_active = django_filters.BooleanFilter()
    active_on = django_filters.DateFilter(method="filter_active_on", label=_("Active on date"))

    class Meta:
        model = RecurringBlockedTime
        fields = ["day_of_week", "is_active", "active_on"]

    def filter_active_on(self, queryset, name, value):
        """Blocks whose date bounds include the given date"""
        return queryset.filter(
            Q(start_date__isnull=True) | Q(start_date__lte=value),
            Q(end_date__isnull=True) | Q(end_date__gte=value),
        )


class BlockedTimeFilter(django_filters.FilterSet):
    source = django_filters.ChoiceFilter(choices=BLOCKED_TIME_SOURCE_CHOICES)
    is_active = django_filters.BooleanFilter()
    start_after = django_filters.DateTimeFilter(field_name="end_datetime", lookup_expr="gt")
    end_before = django_filters.DateTimeFilter(field_name="start_datetime", lookup_expr="lt")

    class Meta:
        model = BlockedTime
        fields = ["source", "is_active", "start_after", "end_before"]
