from django.utils.translation import gettext_lazy as _

# Weekdays follow Python's date.weekday() numbering
MONDAY = 0
TUESDAY = 1
WEDNESDAY = 2
THURSDAY = 3
FRIDAY = 4
SATURDAY = 5
SUNDAY = 6

WEEKDAY_CHOICES = (
    (MONDAY, _("Monday")),
    (TUESDAY, _("Tuesday")),
    (WEDNESDAY, _("Wednesday")),
    (THURSDAY, _("Thursday")),
    (FRIDAY, _("Friday")),
    (SATURDAY, _("Saturday")),
    (SUNDAY, _("Sunday")),
)

WEEKDAY_NAMES = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")

# Blocked time sources; everything except manual is written by calendar sync
SOURCE_MANUAL = "manual"
SOURCE_GOOGLE_CALENDAR = "google_calendar"
SOURCE_OUTLOOK_CALENDAR = "outlook_calendar"
SOURCE_APPLE_CALENDAR = "apple_calendar"
SOURCE_EXTERNAL_SYNC = "external_sync"

BLOCKED_TIME_SOURCE_CHOICES = (
    (SOURCE_MANUAL, _("Manual")),
    (SOURCE_GOOGLE_CALENDAR, _("Google Calendar")),
    (SOURCE_OUTLOOK_CALENDAR, _("Outlook Calendar")),
    (SOURCE_APPLE_CALENDAR, _("Apple Calendar")),
    (SOURCE_EXTERNAL_SYNC, _("External Sync")),
)

EXTERNAL_SOURCES = tuple(value for value, _label in BLOCKED_TIME_SOURCE_CHOICES if value != SOURCE_MANUAL)

# Buffer defaults (minutes)
DEFAULT_BUFFER_BEFORE = 0
DEFAULT_BUFFER_AFTER = 0
DEFAULT_MINIMUM_GAP = 0
DEFAULT_SLOT_INTERVAL = 30

# Cache keys
AVAILABILITY_CACHE_NAMESPACE = "availability"
AVAILABILITY_SEQUENCE_KEY = "availability:{organizer_id}:sequence"
AVAILABILITY_INVALIDATION_KEY = "availability:{organizer_id}:invalidation:{sequence}"
AVAILABILITY_PRECOMPUTE_STATUS_KEY = "availability:{organizer_id}:precompute"
AVAILABILITY_PRECOMPUTE_CANCEL_KEY = "availability:{organizer_id}:precompute:cancel"

# Precompute states
PRECOMPUTE_QUEUED = "queued"
PRECOMPUTE_RUNNING = "running"
PRECOMPUTE_COMPLETED = "completed"
PRECOMPUTE_CANCELLED = "cancelled"
PRECOMPUTE_SKIPPED = "skipped"
