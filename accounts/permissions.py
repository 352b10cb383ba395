# accounts/permissions.py
"""
Role permission catalogue and the checks built on it.

A role stores a flat mapping of permission id -> bool. Every panel view and
action is gated by exactly one id from ``PERMISSIONS``; the admin sidebar is
the same catalogue filtered by the current user's flags.
"""
from __future__ import annotations

from functools import wraps
from typing import Dict, List

from django.contrib import messages
from django.contrib.auth.decorators import login_required
from django.shortcuts import redirect


PERMISSIONS = [
    ("dashboard", "Dashboard"),
    ("add-resource", "Add resource"),
    ("manage-content", "Manage content"),
    ("analytics", "Analytics"),
    ("payments", "Payments"),
    ("manage-users", "Manage users"),
    ("manage-theme", "Manage theme"),
    ("manage-site-content", "Site content"),
    ("manage-ads", "Manage ads"),
    ("manage-assets", "Manage assets"),
    ("manage-resources", "Resource tools"),
    ("manage-suggestions", "Suggestions"),
    ("activity-log", "Activity log"),
    ("credentials", "Credentials"),
    ("manage-roles", "Manage roles"),
    ("can_publish_posts", "Can publish posts"),
]

PERMISSION_IDS = [pid for pid, _ in PERMISSIONS]

_TRUTHY = {"true", "1", "on", "yes"}

# (url name, label, permission) in sidebar order
NAV_ITEMS = [
    ("panel_home", "Dashboard", "dashboard"),
    ("panel_post_create", "Add resource", "add-resource"),
    ("panel_pending", "Pending posts", "can_publish_posts"),
    ("panel_content", "Manage content", "manage-content"),
    ("panel_taxonomy", "Sections & categories", "manage-content"),
    ("panel_analytics", "Analytics", "analytics"),
    ("panel_payments", "Payments", "payments"),
    ("panel_users", "Manage users", "manage-users"),
    ("panel_roles", "Manage roles", "manage-roles"),
    ("panel_theme", "Manage theme", "manage-theme"),
    ("panel_site_content", "Site content", "manage-site-content"),
    ("panel_assets", "Manage assets", "manage-assets"),
    ("panel_health", "Resource tools", "manage-resources"),
    ("panel_suggestions", "Suggestions", "manage-suggestions"),
    ("panel_activity", "Activity log", "activity-log"),
]


def empty_permissions() -> Dict[str, bool]:
    return {pid: False for pid in PERMISSION_IDS}


def _as_bool(value) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in _TRUTHY
    return bool(value)


def normalize_permissions(raw) -> Dict[str, bool]:
    """
    Returns a mapping holding every catalogue id as a bool.
    Unknown keys are dropped, missing ones default to False.
    """
    perms = empty_permissions()
    if not isinstance(raw, dict):
        return perms
    for pid in PERMISSION_IDS:
        if pid in raw:
            perms[pid] = _as_bool(raw[pid])
    return perms


def user_permissions(user) -> Dict[str, bool]:
    if not user or not getattr(user, "is_authenticated", False) or not user.is_active:
        return empty_permissions()

    if user.is_superuser:
        return {pid: True for pid in PERMISSION_IDS}

    role = getattr(user, "role", None)
    if role is None:
        return empty_permissions()
    return normalize_permissions(role.permissions)


def has_permission(user, perm: str) -> bool:
    if perm not in PERMISSION_IDS:
        raise ValueError(f"Unknown permission: {perm}")
    return user_permissions(user)[perm]


def navigation_for(user) -> List[dict]:
    perms = user_permissions(user)
    items = [
        {"url_name": url_name, "label": label, "permission": perm}
        for url_name, label, perm in NAV_ITEMS
        if perms.get(perm)
    ]
    items.append({"url_name": "logout", "label": "Log out", "permission": None})
    return items


def permission_required(perm: str):
    """
    View decorator: login first, then the permission flag.
    Missing permission -> error message + back to the panel home (or the
    public home when the panel home itself is refused).
    """
    if perm not in PERMISSION_IDS:
        raise ValueError(f"Unknown permission: {perm}")

    def decorator(view):
        @login_required
        @wraps(view)
        def wrapped(request, *args, **kwargs):
            if not has_permission(request.user, perm):
                messages.error(request, "You do not have permission to view this page.")
                # the panel home is itself gated by "dashboard"
                return redirect("home" if perm == "dashboard" else "panel_home")
            return view(request, *args, **kwargs)
        return wrapped

    return decorator
