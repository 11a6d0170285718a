import uuid
from datetime import timedelta

from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.utils.translation import gettext_lazy as _

from algorithms.availability.rule_sources import (
    BufferPolicy,
    DateOverride,
    OneOffBlock,
    RecurringBlock,
    WeeklyRule,
)
from algorithms.availability.time_intervals import spans_midnight
from algorithms.availability.timezone_normalizer import TimezoneNormalizer
from apps.availabilityapp.constants import (
    BLOCKED_TIME_SOURCE_CHOICES,
    DEFAULT_BUFFER_AFTER,
    DEFAULT_BUFFER_BEFORE,
    DEFAULT_MINIMUM_GAP,
    DEFAULT_SLOT_INTERVAL,
    SOURCE_MANUAL,
    WEEKDAY_CHOICES,
)
from apps.organizersapp.models import EventType, Organizer

ONE_DAY = timedelta(days=1)


class AvailabilityRule(models.Model):
    """Recurring weekly availability window"""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    organizer = models.ForeignKey(
        Organizer,
        on_delete=models.CASCADE,
        related_name="availability_rules",
        verbose_name=_("Organizer"),
    )
    day_of_week = models.PositiveSmallIntegerField(_("Day of Week"), choices=WEEKDAY_CHOICES)
    start_time = models.TimeField(_("Start Time"))
    end_time = models.TimeField(_("End Time"))
    event_types = models.ManyToManyField(
        EventType,
        related_name="availability_rules",
        verbose_name=_("Event Types"),
        blank=True,
        help_text=_("Leave empty to apply to every event type"),
    )
    is_active = models.BooleanField(_("Active"), default=True)
    created_at = models.DateTimeField(_("Created At"), auto_now_add=True)
    updated_at = models.DateTimeField(_("Updated At"), auto_now=True)

    class Meta:
        verbose_name = _("Availability Rule")
        verbose_name_plural = _("Availability Rules")
        ordering = ["day_of_week", "start_time"]
        indexes = [
            models.Index(fields=["organizer", "day_of_week", "is_active"]),
        ]

    def __str__(self):
        return f"{self.get_day_of_week_display()}: {self.start_time} - {self.end_time}"

    @property
    def spans_midnight(self):
        return spans_midnight(self.start_time, self.end_time)

    def affected_range(self):
        """Weekly rules touch every future date."""
        return None, None

    def to_rule_source(self):
        return WeeklyRule(
            id=str(self.id),
            day_of_week=self.day_of_week,
            start_time=self.start_time,
            end_time=self.end_time,
            event_type_ids=[str(event_type.id) for event_type in self.event_types.all()],
            is_active=self.is_active,
        )


class DateOverrideRule(models.Model):
    """Replaces the weekly rules for one date"""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    organizer = models.ForeignKey(
        Organizer,
        on_delete=models.CASCADE,
        related_name="date_overrides",
        verbose_name=_("Organizer"),
    )
    date = models.DateField(_("Date"))
    is_available = models.BooleanField(_("Available"), default=False)
    start_time = models.TimeField(_("Start Time"), null=True, blank=True)
    end_time = models.TimeField(_("End Time"), null=True, blank=True)
    event_types = models.ManyToManyField(
        EventType,
        related_name="date_overrides",
        verbose_name=_("Event Types"),
        blank=True,
    )
    reason = models.CharField(_("Reason"), max_length=255, blank=True)
    is_active = models.BooleanField(_("Active"), default=True)
    created_at = models.DateTimeField(_("Created At"), auto_now_add=True)
    updated_at = models.DateTimeField(_("Updated At"), auto_now=True)

    class Meta:
        verbose_name = _("Date Override")
        verbose_name_plural = _("Date Overrides")
        ordering = ["date", "start_time"]
        indexes = [
            models.Index(fields=["organizer", "date", "is_active"]),
        ]

    def __str__(self):
        if not self.is_available:
            return f"{self.date}: unavailable"
        return f"{self.date}: {self.start_time} - {self.end_time}"

    @property
    def spans_midnight(self):
        if not self.is_available:
            return False
        return spans_midnight(self.start_time, self.end_time)

    def affected_range(self):
        # Queries read one day of context either side; the window may also
        # run into the next date
        return self.date - ONE_DAY, self.date + 2 * ONE_DAY

    def to_rule_source(self):
        return DateOverride(
            id=str(self.id),
            date=self.date,
            is_available=self.is_available,
            start_time=self.start_time,
            end_time=self.end_time,
            event_type_ids=[str(event_type.id) for event_type in self.event_types.all()],
            is_active=self.is_active,
        )


class RecurringBlockedTime(models.Model):
    """Weekly blocked range such as a lunch break"""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    organizer = models.ForeignKey(
        Organizer,
        on_delete=models.CASCADE,
        related_name="recurring_blocks",
        verbose_name=_("Organizer"),
    )
    name = models.CharField(_("Name"), max_length=150)
    day_of_week = models.PositiveSmallIntegerField(_("Day of Week"), choices=WEEKDAY_CHOICES)
    start_time = models.TimeField(_("Start Time"))
    end_time = models.TimeField(_("End Time"))
    start_date = models.DateField(_("Start Date"), null=True, blank=True)
    end_date = models.DateField(_("End Date"), null=True, blank=True)
    is_active = models.BooleanField(_("Active"), default=True)
    created_at = models.DateTimeField(_("Created At"), auto_now_add=True)
    updated_at = models.DateTimeField(_("Updated At"), auto_now=True)

    class Meta:
        verbose_name = _("Recurring Blocked Time")
        verbose_name_plural = _("Recurring Blocked Times")
        ordering = ["day_of_week", "start_time"]
        indexes = [
            models.Index(fields=["organizer", "day_of_week", "is_active"]),
        ]

    def __str__(self):
        return f"{self.name} ({self.get_day_of_week_display()} {self.start_time} - {self.end_time})"

    @property
    def spans_midnight(self):
        return spans_midnight(self.start_time, self.end_time)

    def affected_range(self):
        # One day of query context either side, plus a block running past
        # midnight after end_date
        start = self.start_date - ONE_DAY if self.start_date else None
        end = self.end_date + 2 * ONE_DAY if self.end_date else None
        return start, end

    def to_rule_source(self):
        return RecurringBlock(
            id=str(self.id),
            day_of_week=self.day_of_week,
            start_time=self.start_time,
            end_time=self.end_time,
            start_date=self.start_date,
            end_date=self.end_date,
            name=self.name,
            is_active=self.is_active,
        )


class BlockedTime(models.Model):
    """Absolute blocked interval, entered manually or synced from a calendar"""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    organizer = models.ForeignKey(
        Organizer,
        on_delete=models.CASCADE,
        related_name="blocked_times",
        verbose_name=_("Organizer"),
    )
    start_datetime = models.DateTimeField(_("Start"))
    end_datetime = models.DateTimeField(_("End"))
    reason = models.CharField(_("Reason"), max_length=255, blank=True)
    source = models.CharField(
        _("Source"),
        max_length=30,
        choices=BLOCKED_TIME_SOURCE_CHOICES,
        default=SOURCE_MANUAL,
    )
    external_id = models.CharField(_("External ID"), max_length=255, blank=True)
    external_updated_at = models.DateTimeField(_("External Updated At"), null=True, blank=True)
    is_active = models.BooleanField(_("Active"), default=True)
    created_at = models.DateTimeField(_("Created At"), auto_now_add=True)
    updated_at = models.DateTimeField(_("Updated At"), auto_now=True)

    class Meta:
        verbose_name = _("Blocked Time")
        verbose_name_plural = _("Blocked Times")
        ordering = ["start_datetime"]
        indexes = [
            models.Index(fields=["organizer", "start_datetime", "end_datetime"]),
            models.Index(fields=["organizer", "source", "external_id"]),
        ]

    def __str__(self):
        return f"{self.start_datetime} - {self.end_datetime} ({self.get_source_display()})"

    @property
    def is_read_only(self):
        return self.source != SOURCE_MANUAL

    def affected_range(self):
        """Organizer-local dates the interval touches, plus a day either side."""
        normalizer = TimezoneNormalizer()
        zone_name = self.organizer.timezone
        start_date, _start_time = normalizer.to_local(self.start_datetime, zone_name)
        end_date, _end_time = normalizer.to_local(self.end_datetime, zone_name)
        return start_date - ONE_DAY, end_date + ONE_DAY

    def to_rule_source(self):
        return OneOffBlock(
            id=str(self.id),
            start_datetime=self.start_datetime,
            end_datetime=self.end_datetime,
            is_active=self.is_active,
        )


class BufferTime(models.Model):
    """Spacing policy, one per organizer"""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    organizer = models.OneToOneField(
        Organizer,
        on_delete=models.CASCADE,
        related_name="buffer_time",
        verbose_name=_("Organizer"),
    )
    default_buffer_before = models.PositiveIntegerField(
        _("Default Buffer Before (minutes)"),
        default=DEFAULT_BUFFER_BEFORE,
        validators=[MaxValueValidator(480)],
    )
    default_buffer_after = models.PositiveIntegerField(
        _("Default Buffer After (minutes)"),
        default=DEFAULT_BUFFER_AFTER,
        validators=[MaxValueValidator(480)],
    )
    minimum_gap = models.PositiveIntegerField(
        _("Minimum Gap (minutes)"),
        default=DEFAULT_MINIMUM_GAP,
        validators=[MaxValueValidator(480)],
    )
    slot_interval_minutes = models.PositiveIntegerField(
        _("Slot Interval (minutes)"),
        default=DEFAULT_SLOT_INTERVAL,
        validators=[MinValueValidator(1), MaxValueValidator(1440)],
    )
    created_at = models.DateTimeField(_("Created At"), auto_now_add=True)
    updated_at = models.DateTimeField(_("Updated At"), auto_now=True)

    class Meta:
        verbose_name = _("Buffer Time")
        verbose_name_plural = _("Buffer Times")

    def __str__(self):
        return f"Buffers for {self.organizer}"

    def affected_range(self):
        return None, None

    def to_policy(self):
        return BufferPolicy(
            buffer_before=self.default_buffer_before,
            buffer_after=self.default_buffer_after,
            minimum_gap=self.minimum_gap,
            slot_interval_minutes=self.slot_interval_minutes,
        )
