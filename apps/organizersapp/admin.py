from django.contrib import admin

from apps.organizersapp.models import EventType, Organizer


class EventTypeInline(admin.TabularInline):
    model = EventType
    extra = 0
    fields = (
        "name",
        "event_type_slug",
        "duration",
        "max_attendees",
        "is_active",
        "buffer_time_before",
        "buffer_time_after",
        "slot_interval_minutes",
    )


@admin.register(Organizer)
class OrganizerAdmin(admin.ModelAdmin):
    list_display = ("id", "display_name", "organizer_slug", "timezone", "created_at")
    search_fields = ("display_name", "organizer_slug", "user__username")
    list_filter = ("timezone",)
    readonly_fields = ("created_at", "updated_at")
    inlines = [EventTypeInline]


@admin.register(EventType)
class EventTypeAdmin(admin.ModelAdmin):
    list_display = ("name", "organizer", "duration", "max_attendees", "is_active")
    list_filter = ("is_active",)
    search_fields = ("name", "event_type_slug", "organizer__organizer_slug")
