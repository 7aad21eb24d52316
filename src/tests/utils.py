"""Shared helpers for tests (identities, authenticated clients, fake Redis)."""

from __future__ import annotations

import uuid
from collections import deque
from typing import Deque, Dict, List

from rest_framework.test import APIClient

from authentication.identity import Identity
from authentication.services import TokenService
from scripts.management.commands.seed_cms import create_seed_admins


class FakePubSub:
    """Minimal PubSub stub matching the calls made by RedisChangeBus."""

    def __init__(self, server: "FakeRedis"):
        self._server = server
        self.channels: List[str] = []
        self.messages: Deque[dict] = deque()
        self.closed = False

    def subscribe(self, *channels: str) -> None:
        for channel in channels:
            self.channels.append(channel)
            self._server.subscribers.setdefault(channel, []).append(self)

    def unsubscribe(self) -> None:
        for channel in self.channels:
            self._server.subscribers.get(channel, []).remove(self)
        self.channels = []

    def get_message(self, ignore_subscribe_messages: bool = False, timeout: float | None = 0.0):
        """Return the next queued message or None; never blocks."""
        if self.messages:
            return self.messages.popleft()
        return None

    def close(self) -> None:
        self.closed = True


class FakeRedis:
    """In-memory stand-in for the pub/sub subset of the Redis client."""

    def __init__(self):
        self.subscribers: Dict[str, List[FakePubSub]] = {}
        self.published: List[tuple[str, str]] = []

    def publish(self, channel: str, message: str) -> int:
        """Mimic Redis PUBLISH; returns the number of receivers."""
        self.published.append((channel, message))
        receivers = self.subscribers.get(channel, [])
        for pubsub in receivers:
            pubsub.messages.append({"type": "message", "channel": channel, "data": message})
        return len(receivers)

    def pubsub(self, ignore_subscribe_messages: bool = False) -> FakePubSub:
        return FakePubSub(self)


def make_identity(email: str, identity_id: str | None = None) -> Identity:
    return Identity(id=identity_id or str(uuid.uuid4()), email=email)


def auth_client(identity: Identity | None = None) -> APIClient:
    """Return an APIClient carrying a fresh bearer token for ``identity``."""
    client = APIClient()
    if identity is not None:
        client.credentials(HTTP_AUTHORIZATION=f"Bearer {TokenService.issue_token(identity)}")
    return client


def seed_admin(email: str = "admin@test.com") -> Identity:
    """Grant admin via the same helper the ``seed_cms`` command uses."""
    return create_seed_admins([email])[email]


def article_payload(**overrides) -> dict:
    payload = {"title": "Hello", "content": "<p>World</p>"}
    payload.update(overrides)
    return payload
