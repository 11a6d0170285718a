from django.contrib import admin

from apps.availabilityapp.models import (
    AvailabilityRule,
    BlockedTime,
    BufferTime,
    DateOverrideRule,
    RecurringBlockedTime,
)


@admin.register(AvailabilityRule)
class AvailabilityRuleAdmin(admin.ModelAdmin):
    list_display = ("organizer", "day_of_week", "start_time", "end_time", "is_active")
    list_filter = ("day_of_week", "is_active")
    search_fields = ("organizer__display_name", "organizer__organizer_slug")
    filter_horizontal = ("event_types",)


@admin.register(DateOverrideRule)
class DateOverrideRuleAdmin(admin.ModelAdmin):
    list_display = ("organizer", "date", "is_available", "start_time", "end_time", "is_active")
    list_filter = ("is_available", "is_active", "date")
    search_fields = ("organizer__display_name", "reason")
    filter_horizontal = ("event_types",)
    date_hierarchy = "date"


@admin.register(RecurringBlockedTime)
class RecurringBlockedTimeAdmin(admin.ModelAdmin):
    list_display = ("organizer", "name", "day_of_week", "start_time", "end_time", "start_date", "end_date")
    list_filter = ("day_of_week", "is_active")
    search_fields = ("organizer__display_name", "name")


@admin.register(BlockedTime)
class BlockedTimeAdmin(admin.ModelAdmin):
    list_display = ("organizer", "start_datetime", "end_datetime", "source", "is_active")
    list_filter = ("source", "is_active")
    search_fields = ("organizer__display_name", "reason", "external_id")
    readonly_fields = ("external_id", "external_updated_at", "created_at", "updated_at")


@admin.register(BufferTime)
class BufferTimeAdmin(admin.ModelAdmin):
    list_display = (
        "organizer",
        "default_buffer_before",
        "default_buffer_after",
        "minimum_gap",
        "slot_interval_minutes",
    )
    search_fields = ("organizer__display_name",)
