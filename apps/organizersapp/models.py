import uuid

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models
from django.utils.translation import gettext_lazy as _

from apps.organizersapp.validators import validate_hour, validate_timezone_name


class Organizer(models.Model):
    """A person whose calendar invitees book time on"""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="organizer_profile",
        verbose_name=_("User"),
    )
    display_name = models.CharField(_("Display Name"), max_length=150)
    organizer_slug = models.SlugField(_("Slug"), max_length=80, unique=True)
    timezone = models.CharField(
        _("Timezone"),
        max_length=64,
        default="UTC",
        validators=[validate_timezone_name],
        help_text=_("IANA timezone that availability rules are written in"),
    )
    reasonable_hours_start = models.PositiveSmallIntegerField(
        _("Reasonable Hours Start"), default=9, validators=[validate_hour]
    )
    reasonable_hours_end = models.PositiveSmallIntegerField(
        _("Reasonable Hours End"), default=18, validators=[validate_hour]
    )
    created_at = models.DateTimeField(_("Created At"), auto_now_add=True)
    updated_at = models.DateTimeField(_("Updated At"), auto_now=True)

    class Meta:
        verbose_name = _("Organizer")
        verbose_name_plural = _("Organizers")

    def __str__(self):
        return self.display_name or self.organizer_slug

    @property
    def reasonable_hours(self):
        return self.reasonable_hours_start, self.reasonable_hours_end


class EventType(models.Model):
    """A kind of meeting an organizer offers (duration, capacity, spacing)"""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    organizer = models.ForeignKey(
        Organizer,
        on_delete=models.CASCADE,
        related_name="event_types",
        verbose_name=_("Organizer"),
    )
    name = models.CharField(_("Name"), max_length=150)
    event_type_slug = models.SlugField(_("Slug"), max_length=80)
    duration = models.PositiveIntegerField(
        _("Duration (minutes)"), default=30, validators=[MinValueValidator(1)]
    )
    max_attendees = models.PositiveIntegerField(
        _("Max Attendees"), default=1, validators=[MinValueValidator(1)]
    )
    is_active = models.BooleanField(_("Active"), default=True)
    buffer_time_before = models.PositiveIntegerField(
        _("Buffer Before (minutes)"),
        null=True,
        blank=True,
        help_text=_("Overrides the organizer's default when set"),
    )
    buffer_time_after = models.PositiveIntegerField(
        _("Buffer After (minutes)"),
        null=True,
        blank=True,
        help_text=_("Overrides the organizer's default when set"),
    )
    slot_interval_minutes = models.PositiveIntegerField(
        _("Slot Interval (minutes)"),
        null=True,
        blank=True,
        validators=[MinValueValidator(1)],
        help_text=_("Overrides the organizer's default when set"),
    )
    created_at = models.DateTimeField(_("Created At"), auto_now_add=True)
    updated_at = models.DateTimeField(_("Updated At"), auto_now=True)

    class Meta:
        verbose_name = _("Event Type")
        verbose_name_plural = _("Event Types")
        unique_together = ("organizer", "event_type_slug")
        ordering = ["name"]
        indexes = [
            models.Index(fields=["organizer", "is_active"]),
        ]

    def __str__(self):
        return f"{self.name} ({self.duration} min)"
