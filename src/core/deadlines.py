"""Per-request deadlines for blocking store calls.

Callers bound an operation with the ``X-Request-Timeout`` header (seconds).
``RequestDeadlineMiddleware`` parses it into ``request.deadline_seconds`` and
repositories wrap their queries in :func:`statement_deadline`, which on
Postgres sets a transaction-local ``statement_timeout``. A cancelled query is
reported as :class:`core.exceptions.Timeout`.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from django.conf import settings
from django.db import OperationalError, connection, transaction

from core.exceptions import Timeout, is_statement_timeout

DEADLINE_HEADER = "HTTP_X_REQUEST_TIMEOUT"


def parse_deadline(raw: str | None) -> float | None:
    """Return the requested deadline in seconds, clamped to the configured max.

    Missing, malformed, or non-positive values mean "no caller deadline".
    """

    if not raw:
        return None
    try:
        seconds = float(raw)
    except ValueError:
        return None
    if seconds <= 0:
        return None
    return min(seconds, settings.REQUEST_TIMEOUT_MAX_SECONDS)


@contextmanager
def statement_deadline(seconds: float | None) -> Iterator[None]:
    """Run the enclosed queries in one transaction bounded by ``seconds``."""

    with transaction.atomic():
        if seconds is not None and connection.vendor == "postgresql":
            with connection.cursor() as cursor:
                cursor.execute("SET LOCAL statement_timeout = %s", [int(seconds * 1000)])
        try:
            yield
        except OperationalError as exc:
            if is_statement_timeout(exc):
                raise Timeout() from exc
            raise


__all__ = ["DEADLINE_HEADER", "parse_deadline", "statement_deadline"]
