from .permissions import navigation_for, user_permissions


def panel_navigation(request):
    user = getattr(request, "user", None)
    if not user or not user.is_authenticated:
        return {"panel_nav": [], "panel_perms": {}}

    return {
        "panel_nav": navigation_for(user),
        "panel_perms": user_permissions(user),
    }
