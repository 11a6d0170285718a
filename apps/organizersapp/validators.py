from django.core.exceptions import ValidationError
from django.utils.translation import gettext_lazy as _

from algorithms.availability.timezone_normalizer import is_valid_timezone


def validate_timezone_name(value):
    """Reject strings that are not IANA timezone identifiers."""
    if not is_valid_timezone(value):
        raise ValidationError(
            _("%(value)s is not a valid IANA timezone."),
            params={"value": value},
            code="invalid_timezone",
        )


def validate_hour(value):
    if not 0 <= value <= 23:
        raise ValidationError(_("Hour must be between 0 and 23."), code="invalid_hour")
