# api/v1/views/index.py
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.reverse import reverse


@api_view(["GET"])
@permission_classes([AllowAny])
def api_root(request, format=None):
    """
    The Slotwise API root.

    This endpoint provides links to all major API endpoints.
    """
    return Response(
        {
            "auth": {
                "token": reverse("token_obtain_pair", request=request, format=format),
                "refresh": reverse("token_refresh", request=request, format=format),
            },
            "availability": {
                "rules": reverse("availability-rule-list", request=request, format=format),
                "overrides": reverse("date-override-list", request=request, format=format),
                "recurring_blocks": reverse("recurring-block-list", request=request, format=format),
                "blocked": reverse("blocked-time-list", request=request, format=format),
                "buffer": reverse("buffer-time", request=request, format=format),
                "stats": reverse("availability-stats", request=request, format=format),
            },
            "documentation": {
                "swagger": reverse("schema-swagger-ui", request=request, format=format),
                "redoc": reverse("schema-redoc", request=request, format=format),
            },
        }
    )
