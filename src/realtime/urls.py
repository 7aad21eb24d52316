"""Routing for realtime change streams."""

from django.urls import path

from .views import ArticleChangeStreamView

urlpatterns = [
    path("realtime/articles/", ArticleChangeStreamView.as_view(), name="realtime-articles"),
]
