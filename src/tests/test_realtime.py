"""Change bus and SSE stream tests."""

from __future__ import annotations

import json

from django.test import SimpleTestCase, TestCase, override_settings
from rest_framework.test import APIClient

from realtime.bus import InMemoryChangeBus, RedisChangeBus, SubscriptionClosed, get_change_bus, reset_change_buses
from realtime.events import DELETE, INSERT, UPDATE, ChangeEvent
from realtime.views import event_stream
from tests.utils import FakeRedis, article_payload, auth_client, make_identity, seed_admin


class InMemoryChangeBusTests(SimpleTestCase):
    """Fan-out, coalescing and cleanup of in-process subscriptions."""

    def setUp(self):
        self.bus = InMemoryChangeBus(coalesce_seconds=0.05)

    def test_every_subscriber_of_a_table_receives_events(self):
        first = self.bus.subscribe("articles")
        second = self.bus.subscribe("articles")
        other = self.bus.subscribe("media")

        self.bus.publish(ChangeEvent("articles", INSERT))

        self.assertEqual(first.get(timeout=0.1).operation, INSERT)
        self.assertEqual(second.get(timeout=0.1).operation, INSERT)
        self.assertIsNone(other.get(timeout=0.01))

    def test_burst_is_coalesced_into_one_event(self):
        subscription = self.bus.subscribe("articles")
        for operation in (INSERT, UPDATE, DELETE):
            self.bus.publish(ChangeEvent("articles", operation))

        event = subscription.get(timeout=0.1)

        self.assertEqual(event.count, 3)
        self.assertEqual(event.operation, DELETE)
        self.assertIsNone(subscription.get(timeout=0.01))

    def test_get_returns_none_when_idle(self):
        self.assertIsNone(self.bus.subscribe("articles").get(timeout=0.01))

    def test_close_releases_and_is_idempotent(self):
        subscription = self.bus.subscribe("articles")
        self.assertEqual(self.bus.subscription_count("articles"), 1)

        subscription.close()
        subscription.close()

        self.assertTrue(subscription.closed)
        self.assertEqual(self.bus.subscription_count("articles"), 0)
        with self.assertRaises(SubscriptionClosed):
            subscription.get(timeout=0.01)
        self.assertEqual(list(subscription), [])

    def test_context_manager_closes(self):
        with self.bus.subscribe("articles") as subscription:
            self.assertFalse(subscription.closed)

        self.assertTrue(subscription.closed)
        self.assertEqual(self.bus.subscription_count("articles"), 0)

    def test_lagging_subscriber_drops_overflow(self):
        bus = InMemoryChangeBus(coalesce_seconds=0.01, maxsize=2)
        subscription = bus.subscribe("articles")

        for _ in range(5):
            bus.publish(ChangeEvent("articles", UPDATE))

        self.assertEqual(subscription.get(timeout=0.1).count, 2)

    def test_iteration_yields_events_until_closed(self):
        subscription = self.bus.subscribe("articles")
        subscription.poll_interval = 0.01
        self.bus.publish(ChangeEvent("articles", INSERT))

        received = []
        for event in subscription:
            received.append(event)
            subscription.close()

        self.assertEqual([(e.operation, e.count) for e in received], [(INSERT, 1)])
        self.assertTrue(subscription.closed)
        self.assertEqual(self.bus.subscription_count("articles"), 0)


class RedisChangeBusTests(SimpleTestCase):
    """Redis pub/sub backend against an in-memory fake server."""

    def setUp(self):
        self.redis = FakeRedis()
        self.bus = RedisChangeBus(client=self.redis, channel_prefix="test", coalesce_seconds=0)

    def test_publish_reaches_subscribers_on_the_table_channel(self):
        subscription = self.bus.subscribe("articles")

        self.bus.publish(ChangeEvent("articles", INSERT))

        channel, message = self.redis.published[0]
        self.assertEqual(channel, "test:articles")
        self.assertEqual(
            json.loads(message),
            {"event": "*", "schema": "public", "table": "articles", "operation": INSERT, "count": 1},
        )
        event = subscription.get(timeout=0)
        self.assertEqual((event.table, event.operation), ("articles", INSERT))

    def test_malformed_message_is_ignored(self):
        subscription = self.bus.subscribe("articles")
        self.redis.publish("test:articles", "not json")

        self.assertIsNone(subscription.get(timeout=0))

    def test_subscribe_ack_does_not_end_the_wait(self):
        subscription = self.bus.subscribe("articles")
        pubsub = self.redis.subscribers["test:articles"][0]
        pubsub.messages.append({"type": "subscribe", "channel": "test:articles", "data": 1})
        self.redis.publish("test:articles", json.dumps(ChangeEvent("articles", UPDATE).as_message()))

        event = subscription.get(timeout=0)

        self.assertEqual(event.operation, UPDATE)

    def test_empty_poll_before_the_deadline_keeps_waiting(self):
        subscription = self.bus.subscribe("articles")
        pubsub = self.redis.subscribers["test:articles"][0]
        pubsub.messages.append(None)
        self.redis.publish("test:articles", json.dumps(ChangeEvent("articles", DELETE).as_message()))

        event = subscription.get(timeout=1.0)

        self.assertEqual(event.operation, DELETE)

    def test_close_unsubscribes(self):
        subscription = self.bus.subscribe("articles")
        pubsub = self.redis.subscribers["test:articles"][0]

        subscription.close()

        self.assertTrue(pubsub.closed)
        self.assertEqual(self.redis.subscribers["test:articles"], [])


class ChangeBusFactoryTests(SimpleTestCase):
    def setUp(self):
        reset_change_buses()
        self.addCleanup(reset_change_buses)

    @override_settings(CHANGE_BUS_BACKEND="memory")
    def test_bus_is_shared_per_backend(self):
        self.assertIs(get_change_bus(), get_change_bus())
        self.assertIsInstance(get_change_bus(), InMemoryChangeBus)

    @override_settings(CHANGE_BUS_BACKEND="carrier-pigeon")
    def test_unknown_backend_is_rejected(self):
        with self.assertRaises(ValueError):
            get_change_bus()


class EventStreamTests(SimpleTestCase):
    """SSE framing and subscription cleanup of the stream generator."""

    def setUp(self):
        self.bus = InMemoryChangeBus(coalesce_seconds=0)

    def test_frames_and_cleanup(self):
        subscription = self.bus.subscribe("articles")
        stream = event_stream(subscription, heartbeat=0.01)

        self.assertEqual(next(stream), "retry: 3000\n\n")
        self.assertEqual(next(stream), ": keepalive\n\n")

        self.bus.publish(ChangeEvent("articles", UPDATE))
        frame = next(stream)
        self.assertTrue(frame.startswith("event: change\ndata: "))
        self.assertEqual(json.loads(frame.split("data: ", 1)[1])["operation"], UPDATE)

        stream.close()
        self.assertTrue(subscription.closed)
        self.assertEqual(self.bus.subscription_count("articles"), 0)

    def test_stream_ends_when_subscription_is_closed(self):
        subscription = self.bus.subscribe("articles")
        stream = event_stream(subscription, heartbeat=0.01)
        next(stream)

        subscription.close()

        self.assertEqual(list(stream), [])


@override_settings(CHANGE_BUS_BACKEND="memory", REALTIME_HEARTBEAT_SECONDS=0.01)
class ArticleChangeStreamApiTests(TestCase):
    """Subscription endpoint is admin only and streams article changes."""

    @classmethod
    def setUpTestData(cls):
        cls.admin = seed_admin()

    def setUp(self):
        reset_change_buses()
        self.addCleanup(reset_change_buses)

    def test_anonymous_and_non_admin_are_refused(self):
        self.assertEqual(APIClient().get("/realtime/articles/").status_code, 401)
        self.assertEqual(auth_client(make_identity("user@test.com")).get("/realtime/articles/").status_code, 403)

    def test_admin_receives_change_after_commit(self):
        response = auth_client(self.admin).get("/realtime/articles/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response["Content-Type"], "text/event-stream")
        stream = iter(response.streaming_content)
        self.assertEqual(next(stream), b"retry: 3000\n\n")

        with self.captureOnCommitCallbacks(execute=True):
            auth_client(self.admin).post("/articles/", article_payload(), format="json")

        frame = next(stream)
        while frame == b": keepalive\n\n":
            frame = next(stream)
        self.assertIn(b'"table": "articles"', frame)

        response.close()
        self.assertEqual(get_change_bus().subscription_count("articles"), 0)
