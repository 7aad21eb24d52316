"""System checks for gateway configuration."""

from django.core.checks import Error, register

from access_control.gateway import BUSINESS_ELEMENTS
from access_control.permissions import GatewayPermission


def gateway_protected_views():
    """Views that route their requests through the gateway."""
    # Import here to avoid circular imports at module load time.
    from access_control.views import AdminUserViewSet
    from articles.views import ArticleViewSet
    from media.views import MediaObjectView
    from realtime.views import ArticleChangeStreamView

    return [ArticleViewSet, AdminUserViewSet, MediaObjectView, ArticleChangeStreamView]


@register()
def gateway_views_have_business_element(app_configs, **kwargs):
    """Ensure gateway-protected views declare a known business_element.

    A view using ``GatewayPermission`` without an element would deny every
    request, and a misspelled element would be denied by the gateway; both
    are configuration errors worth catching at startup.
    """
    errors: list[Error] = []

    for view_cls in gateway_protected_views():
        permission_classes = getattr(view_cls, "permission_classes", [])
        if GatewayPermission not in permission_classes:
            errors.append(
                Error(
                    f"{view_cls.__name__} does not use GatewayPermission.",
                    obj=view_cls,
                    id="access_control.E002",
                )
            )
            continue
        element = getattr(view_cls, "business_element", None)
        if element not in BUSINESS_ELEMENTS:
            errors.append(
                Error(
                    f"{view_cls.__name__} uses GatewayPermission but does not "
                    f"define a known business_element.",
                    obj=view_cls,
                    id="access_control.E001",
                )
            )

    return errors
