# api/v1/urls.py
from django.urls import include, path
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from api.v1.views.index import api_root

urlpatterns = [
    # API root view
    path("", api_root, name="api-root"),
    # Authentication
    path("token/", TokenObtainPairView.as_view(), name="token_obtain_pair"),
    path("token/refresh/", TokenRefreshView.as_view(), name="token_refresh"),
    # Availability endpoints
    path("availability/", include("apps.availabilityapp.urls")),
]
