"""Routes for /admin-users/, keyed by email."""

from rest_framework.routers import SimpleRouter

from .views import AdminUserViewSet

router = SimpleRouter()
router.register(r"admin-users", AdminUserViewSet, basename="admin-user")

urlpatterns = router.urls
