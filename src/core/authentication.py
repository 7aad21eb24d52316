"""DRF authenticator surfacing the identity resolved by ``JWTAuthMiddleware``.

Bearer tokens are verified once, in the middleware, so that invalid tokens
are refused even on public endpoints. DRF only needs to be told who the
caller is.
"""

from typing import Optional, Tuple

from rest_framework.authentication import BaseAuthentication

from authentication.identity import Identity


class MiddlewareUserAuthentication(BaseAuthentication):
    """Hand DRF the ``Identity`` attached to the Django request.

    Anonymous callers yield ``None`` and DRF falls back to its
    unauthenticated user.
    """

    www_authenticate_realm = "cms"

    def authenticate(self, request) -> Optional[Tuple[Identity, None]]:
        identity = getattr(getattr(request, "_request", None), "user", None)
        if not isinstance(identity, Identity):
            return None
        return identity, None

    def authenticate_header(self, request) -> str:
        # Without a challenge DRF downgrades NotAuthenticated to 403.
        return f'Bearer realm="{self.www_authenticate_realm}"'


__all__ = ["MiddlewareUserAuthentication"]
