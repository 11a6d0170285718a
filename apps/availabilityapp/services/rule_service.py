# apps/availabilityapp/services/rule_service.py
import logging
from contextlib import contextmanager
from typing import Any, Dict, Optional

from django.conf import settings
from django.db import transaction
from django.utils.translation import gettext_lazy as _

from algorithms.availability.conflict_detector import find_conflicting_rule
from apps.availabilityapp.constants import EXTERNAL_SOURCES, SOURCE_MANUAL
from apps.availabilityapp.models import (
    AvailabilityRule,
    BlockedTime,
    BufferTime,
    DateOverrideRule,
    RecurringBlockedTime,
)
from apps.organizersapp.models import Organizer
from core.exceptions import (
    ConcurrentModificationException,
    PermissionDeniedException,
    SchedulingConflictException,
    ValidationException,
)
from utils.distributed_locks import distributed_lock

logger = logging.getLogger(__name__)

# Rule kinds whose siblings must not overlap, with the field that picks siblings
CONFLICT_SCOPES = {
    AvailabilityRule: "day_of_week",
    DateOverrideRule: "date",
    RecurringBlockedTime: "day_of_week",
}


class RuleService:
    """
    Writes to an organizer's availability rules.

    Every write runs read-validate-write under a per-organizer mutex so two
    concurrent edits cannot both pass the conflict check.
    """

    @staticmethod
    @contextmanager
    def organizer_lock(organizer: Organizer):
        """
        Serialise rule writes for one organizer.

        Raises:
            ConcurrentModificationException: if the lock is not acquired in time
        """
        timeout = getattr(settings, "AVAILABILITY_LOCK_TIMEOUT", 10)
        with distributed_lock(f"organizer_rules:{organizer.id}", timeout=timeout) as acquired:
            if not acquired:
                logger.warning(f"Rule write for organizer {organizer.id} timed out waiting for lock")
                raise ConcurrentModificationException()
            with transaction.atomic():
                Organizer.objects.select_for_update().filter(pk=organizer.pk).first()
                yield

    @classmethod
    def create_rule(cls, organizer: Organizer, model_class, data: Dict[str, Any]):
        """
        Create a rule of ``model_class`` after checking it for conflicts.

        Args:
            organizer: Owner of the rule
            model_class: One of the rule models
            data: Field values; ``event_types`` is applied after saving

        Returns:
            The saved rule
        """
        data = dict(data)
        event_types = data.pop("event_types", None)

        with cls.organizer_lock(organizer):
            rule = model_class(organizer=organizer, **data)
            cls.check_conflicts(rule)
            rule.save()
            if event_types is not None:
                rule.event_types.set(event_types)

        logger.info(f"Created {model_class.__name__} {rule.id} for organizer {organizer.id}")
        return rule

    @classmethod
    def update_rule(cls, rule, data: Dict[str, Any]):
        """Apply ``data`` to an existing rule after checking it for conflicts."""
        cls.ensure_editable(rule)
        data = dict(data)
        event_types = data.pop("event_types", None)

        with cls.organizer_lock(rule.organizer):
            for field, value in data.items():
                setattr(rule, field, value)
            cls.check_conflicts(rule)
            rule.save()
            if event_types is not None:
                rule.event_types.set(event_types)

        logger.info(f"Updated {rule.__class__.__name__} {rule.id}")
        return rule

    @classmethod
    def delete_rule(cls, rule):
        cls.ensure_editable(rule)
        rule_id = rule.id
        with cls.organizer_lock(rule.organizer):
            rule.delete()
        logger.info(f"Deleted {rule.__class__.__name__} {rule_id}")

    @staticmethod
    def get_buffer_time(organizer: Organizer) -> BufferTime:
        """The stored policy, or an unsaved one holding the defaults."""
        return BufferTime.objects.filter(organizer=organizer).first() or BufferTime(organizer=organizer)

    @classmethod
    def update_buffer_time(cls, organizer: Organizer, data: Dict[str, Any]) -> BufferTime:
        """Create or update the organizer's buffer policy under the organizer mutex."""
        with cls.organizer_lock(organizer):
            buffer_time = cls.get_buffer_time(organizer)
            for field, value in data.items():
                setattr(buffer_time, field, value)
            buffer_time.save()

        logger.info(f"Updated buffer policy for organizer {organizer.id}")
        return buffer_time

    @staticmethod
    def ensure_editable(rule):
        """Calendar-synced blocks belong to the sync service, not the organizer."""
        if isinstance(rule, BlockedTime) and rule.is_read_only:
            raise PermissionDeniedException(
                _("Blocked times synced from an external calendar are read-only.")
            )

    @staticmethod
    def find_conflict(rule) -> Optional[Any]:
        """Return the existing sibling that ``rule`` collides with, if any."""
        scope_field = CONFLICT_SCOPES.get(type(rule))
        if scope_field is None or not rule.is_active:
            return None

        siblings = (
            type(rule)
            .objects.filter(organizer=rule.organizer, is_active=True, **{scope_field: getattr(rule, scope_field)})
            .exclude(pk=rule.pk)
            .order_by("start_time", "created_at")
        )
        return find_conflicting_rule(rule, siblings, exclude_id=rule.pk)

    @classmethod
    def check_conflicts(cls, rule):
        conflict = cls.find_conflict(rule)
        if conflict is not None:
            logger.info(f"{rule.__class__.__name__} for organizer {rule.organizer_id} conflicts with {conflict.id}")
            raise SchedulingConflictException(
                message=_("This rule overlaps or touches an existing rule: %(rule)s") % {"rule": conflict},
                conflicting_rule=conflict,
            )

    # ------------------------------------------------------------------
    # External calendar ingestion
    # ------------------------------------------------------------------

    @classmethod
    def upsert_external_block(
        cls,
        organizer: Organizer,
        source: str,
        external_id: str,
        start_datetime,
        end_datetime,
        reason: str = "",
        external_updated_at=None,
        is_active: bool = True,
    ) -> BlockedTime:
        """
        Create or refresh a blocked interval written by calendar sync.

        Updates older than the stored ``external_updated_at`` are ignored.

        Raises:
            ValidationException: for a manual source, a missing id or an
                inverted interval
        """
        if source not in EXTERNAL_SOURCES:
            raise ValidationException(_("Unknown external source: %(source)s") % {"source": source})
        if not external_id:
            raise ValidationException(_("external_id is required for synced blocks."))
        if end_datetime <= start_datetime:
            raise ValidationException(_("end_datetime must be after start_datetime."))

        with cls.organizer_lock(organizer):
            block = BlockedTime.objects.filter(
                organizer=organizer, source=source, external_id=external_id
            ).first()

            if block is None:
                block = BlockedTime(organizer=organizer, source=source, external_id=external_id)
            elif (
                external_updated_at
                and block.external_updated_at
                and external_updated_at <= block.external_updated_at
            ):
                logger.debug(f"Ignoring stale update for {source}:{external_id}")
                return block

            block.start_datetime = start_datetime
            block.end_datetime = end_datetime
            block.reason = reason
            block.external_updated_at = external_updated_at
            block.is_active = is_active
            block.save()

        logger.info(f"Synced blocked time {source}:{external_id} for organizer {organizer.id}")
        return block

    @classmethod
    def remove_external_block(cls, organizer: Organizer, source: str, external_id: str) -> bool:
        """
        Delete a synced block.

        Returns:
            True if a block was deleted
        """
        if source == SOURCE_MANUAL:
            raise ValidationException(_("Manual blocks are not managed by calendar sync."))

        with cls.organizer_lock(organizer):
            deleted, _details = BlockedTime.objects.filter(
                organizer=organizer, source=source, external_id=external_id
            ).delete()

        if deleted:
            logger.info(f"Removed synced blocked time {source}:{external_id}")
        return bool(deleted)
