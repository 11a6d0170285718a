import logging
from functools import partial

from django.db import transaction
from django.db.models.signals import m2m_changed, post_delete, post_save, pre_save
from django.dispatch import receiver

from algorithms.availability.rule_sources import BufferPolicy
from apps.availabilityapp.models import (
    AvailabilityRule,
    BlockedTime,
    BufferTime,
    DateOverrideRule,
    RecurringBlockedTime,
)
from apps.availabilityapp.services.cache_service import AvailabilityCache
from apps.organizersapp.models import EventType, Organizer

logger = logging.getLogger(__name__)

RULE_MODELS = (AvailabilityRule, DateOverrideRule, RecurringBlockedTime, BlockedTime, BufferTime)
UNBOUNDED = (None, None)


def _affected_range(instance):
    try:
        return instance.affected_range()
    except Organizer.DoesNotExist:
        return UNBOUNDED


def _merge_ranges(first, second):
    """Smallest range covering both; None bounds stay unbounded."""
    if first is None:
        return second
    if second is None:
        return first
    starts = (first[0], second[0])
    ends = (first[1], second[1])
    start = None if None in starts else min(starts)
    end = None if None in ends else max(ends)
    return start, end


def invalidate_organizer(organizer_id, affected_range):
    """
    Invalidate now and again once the surrounding transaction commits.

    The first pass stops readers from serving entries computed before the
    write; the second catches entries computed from the old rows while the
    transaction was still open.
    """
    AvailabilityCache.invalidate(organizer_id, affected_range)
    transaction.on_commit(partial(AvailabilityCache.invalidate, organizer_id, affected_range))


@receiver(pre_save)
def remember_previous_range(sender, instance, **kwargs):
    """Capture the dates a rule covered before an edit moves it."""
    if sender not in RULE_MODELS or instance._state.adding:
        return
    previous = sender.objects.filter(pk=instance.pk).select_related("organizer").first()
    instance._previous_affected_range = _affected_range(previous) if previous else None


@receiver(post_save)
def rule_post_save(sender, instance, created, **kwargs):
    """Handle post save actions for availability rules"""
    if sender not in RULE_MODELS:
        return
    if sender is BufferTime and created and instance.to_policy() == BufferPolicy():
        # Same spacing the resolver already used while no row existed
        return
    affected = _merge_ranges(
        getattr(instance, "_previous_affected_range", None), _affected_range(instance)
    )
    invalidate_organizer(instance.organizer_id, affected)


@receiver(post_delete)
def rule_post_delete(sender, instance, **kwargs):
    """Handle post delete actions for availability rules"""
    if sender not in RULE_MODELS:
        return
    invalidate_organizer(instance.organizer_id, _affected_range(instance))


@receiver(m2m_changed, sender=AvailabilityRule.event_types.through)
@receiver(m2m_changed, sender=DateOverrideRule.event_types.through)
def rule_event_types_changed(sender, instance, action, **kwargs):
    """Event-type scoping changes which rules apply to which queries."""
    if action not in ("post_add", "post_remove", "post_clear"):
        return
    if isinstance(instance, (AvailabilityRule, DateOverrideRule)):
        invalidate_organizer(instance.organizer_id, _affected_range(instance))
    elif isinstance(instance, EventType):
        invalidate_organizer(instance.organizer_id, UNBOUNDED)


@receiver(post_save, sender=Organizer)
def organizer_post_save(sender, instance, created, **kwargs):
    """A timezone or reasonable-hours change alters every cached slot."""
    if not created:
        invalidate_organizer(instance.id, UNBOUNDED)


@receiver(post_save, sender=EventType)
@receiver(post_delete, sender=EventType)
def event_type_changed(sender, instance, **kwargs):
    invalidate_organizer(instance.organizer_id, UNBOUNDED)
