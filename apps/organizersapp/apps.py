from django.apps import AppConfig
from django.utils.translation import gettext_lazy as _


class OrganizersAppConfig(AppConfig):
    name = "apps.organizersapp"
    verbose_name = _("Organizers")
