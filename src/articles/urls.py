"""Routes for /articles/ list, detail and mutations."""

from rest_framework.routers import SimpleRouter

from .views import ArticleViewSet

router = SimpleRouter()
router.register(r"articles", ArticleViewSet, basename="article")

urlpatterns = router.urls
