"""Server-Sent Events stream of article changes for admin sessions."""

import json
import logging

from django.conf import settings
from django.http import StreamingHttpResponse
from rest_framework.renderers import BaseRenderer, JSONRenderer

from access_control.gateway import REALTIME
from access_control.permissions import GatewayPermission
from articles.repository import TABLE as ARTICLES_TABLE
from core.response import BaseAPIView
from .bus import Subscription, SubscriptionClosed, get_change_bus

logger = logging.getLogger(__name__)


class EventStreamRenderer(BaseRenderer):
    """Lets clients send ``Accept: text/event-stream``; errors render as one JSON event."""

    media_type = "text/event-stream"
    format = "event-stream"
    charset = "utf-8"

    def render(self, data, accepted_media_type=None, renderer_context=None):
        return f"data: {json.dumps(data)}\n\n".encode(self.charset)


def event_stream(subscription: Subscription, heartbeat: float):
    """Yield SSE frames until the client goes away.

    The subscription is closed in ``finally`` so a dropped connection
    (generator closed by the server) releases the channel.
    """
    try:
        yield "retry: 3000\n\n"
        while True:
            try:
                event = subscription.get(timeout=heartbeat)
            except SubscriptionClosed:
                return
            if event is None:
                yield ": keepalive\n\n"
                continue
            yield f"event: change\ndata: {json.dumps(event.as_message())}\n\n"
    finally:
        subscription.close()
        logger.info("Realtime subscriber left %s", subscription.table)


class ArticleChangeStreamView(BaseAPIView):
    """Subscribe to ``articles`` changes. Admin only.

    Each frame only says that something changed; clients re-fetch the list.
    """

    permission_classes = [GatewayPermission]
    business_element = REALTIME
    renderer_classes = [JSONRenderer, EventStreamRenderer]

    # noinspection PyMethodMayBeStatic
    def get(self, request):
        subscription = get_change_bus().subscribe(ARTICLES_TABLE)
        logger.info("Realtime subscriber joined %s", ARTICLES_TABLE)
        response = StreamingHttpResponse(
            event_stream(subscription, settings.REALTIME_HEARTBEAT_SECONDS),
            content_type="text/event-stream",
        )
        response["Cache-Control"] = "no-cache"
        response["X-Accel-Buffering"] = "no"
        return response


__all__ = ["ArticleChangeStreamView", "EventStreamRenderer", "event_stream"]
