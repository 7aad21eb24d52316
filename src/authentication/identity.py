"""Authenticated principal issued by the external identity provider."""

from dataclasses import dataclass


@dataclass(frozen=True)
class Identity:
    """A verified caller: a stable provider id plus an email.

    Quacks like a Django user where DRF and the middleware look
    (``is_authenticated``, ``is_anonymous``) so it can live on
    ``request.user``. Anonymous callers are Django's ``AnonymousUser``.
    """

    id: str
    email: str

    is_authenticated = True
    is_anonymous = False
    is_active = True

    def __post_init__(self) -> None:
        object.__setattr__(self, "email", normalize_email(self.email))

    def __str__(self) -> str:  # pragma: no cover - trivial
        return self.email


def normalize_email(email: str) -> str:
    """Emails are compared case-insensitively everywhere."""
    return (email or "").strip().lower()


__all__ = ["Identity", "normalize_email"]
