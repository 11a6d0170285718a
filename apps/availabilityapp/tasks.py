import logging

from celery import shared_task

from apps.availabilityapp.services.availability_service import AvailabilityService
from apps.organizersapp.models import Organizer
from utils.distributed_locks import with_distributed_lock

logger = logging.getLogger(__name__)

# Long enough for a full precompute window of every event type
PRECOMPUTE_LOCK_EXPIRES = 60 * 30


def _precompute_lock_busy(organizer_id, *args, **kwargs):
    AvailabilityService.mark_precompute_skipped(organizer_id)
    return None


@shared_task
@with_distributed_lock(
    key_func=lambda organizer_id, *args, **kwargs: f"availability_precompute:{organizer_id}",
    expires=PRECOMPUTE_LOCK_EXPIRES,
    timeout=0,
    on_busy=_precompute_lock_busy,
)
def precompute_availability(organizer_id, days_ahead=None):
    """
    Celery task to warm the availability cache of one organizer.

    Skipped when another precompute for the same organizer is running.
    """
    try:
        organizer = Organizer.objects.get(id=organizer_id)
    except Organizer.DoesNotExist:
        logger.warning(f"Precompute skipped, organizer {organizer_id} not found")
        return None

    summary = AvailabilityService.precompute(organizer, days_ahead)
    return {
        "organizer_id": str(organizer_id),
        "status": summary["status"],
        "days_processed": summary["days_processed"],
    }


@shared_task
def precompute_all_organizers(days_ahead=None):
    """
    Celery task to queue precompute for every organizer with active event types
    """
    organizer_ids = (
        Organizer.objects.filter(event_types__is_active=True).values_list("id", flat=True).distinct()
    )
    count = 0
    for organizer_id in organizer_ids:
        AvailabilityService.mark_precompute_queued(organizer_id)
        precompute_availability.delay(str(organizer_id), days_ahead)
        count += 1

    logger.info(f"Queued availability precompute for {count} organizers")
    return f"Queued precompute for {count} organizers"
