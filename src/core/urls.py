"""Root URL configuration for the publishing CMS API."""
from django.urls import include, path
from drf_spectacular.views import SpectacularAPIView

urlpatterns = [
    path("api/schema/", SpectacularAPIView.as_view(), name="schema"),
    path("", include("access_control.urls")),
    path("", include("articles.urls")),
    path("", include("media.urls")),
    path("", include("realtime.urls")),
]
