# accounts/users.py
from __future__ import annotations

import logging

from django.db import transaction

from .activity import log_activity
from .models import Role, User

logger = logging.getLogger(__name__)


class RoleProtected(Exception):
    """Raised when a built-in or in-use role would be changed or removed."""


class UserHasPosts(Exception):
    """Raised when deleting a user that still authors posts."""


def list_users():
    return User.objects.select_related("role").order_by("email")


def create_user_with_role(*, email: str, password: str, role: Role | None, actor=None) -> User:
    with transaction.atomic():
        user = User.objects.create_user(email=email, password=password, role=role)
    log_activity(actor, f"Created user {user.email}", {"user_id": user.pk, "role": user.role_name})
    return user


def assign_role(user: User, role: Role | None, actor=None) -> User:
    user.role = role
    user.save(update_fields=["role"])
    log_activity(actor, f"Changed role of {user.email}", {"user_id": user.pk, "role": user.role_name})
    return user


def set_user_password(user: User, password: str, actor=None) -> User:
    user.set_password(password)
    user.save(update_fields=["password"])
    log_activity(actor, f"Reset password of {user.email}", {"user_id": user.pk})
    return user


def user_has_posts(user: User) -> bool:
    return user.posts.exists()


def delete_user(user: User, actor=None) -> None:
    if user_has_posts(user):
        raise UserHasPosts(f"{user.email} still has posts.")
    email = user.email
    user.delete()
    log_activity(actor, f"Deleted user {email}")


@transaction.atomic
def transfer_superadmin(current: User, new_admin: User) -> User:
    """
    Moves SuperAdmin status from ``current`` to ``new_admin``.
    Exactly one of the two holds it afterwards.
    """
    if not current.is_superuser:
        raise PermissionError("Only the SuperAdmin can transfer the role.")
    if current.pk == new_admin.pk:
        return current

    locked = {u.pk: u for u in User.objects.select_for_update().filter(pk__in=[current.pk, new_admin.pk])}
    old, new = locked[current.pk], locked[new_admin.pk]

    new.is_superuser = True
    new.is_staff = True
    new.save(update_fields=["is_superuser", "is_staff"])

    old.is_superuser = False
    old.is_staff = False
    old.save(update_fields=["is_superuser", "is_staff"])

    logger.info("SuperAdmin transferred from %s to %s", old.email, new.email)
    log_activity(old, f"Transferred SuperAdmin to {new.email}", {"new_admin_id": new.pk})
    return new


def save_role(*, name: str, permissions: dict, role: Role | None = None, actor=None) -> Role:
    if role is not None and role.is_locked:
        raise RoleProtected(f'The "{role.name}" role cannot be edited.')

    created = role is None
    role = role or Role()
    role.name = name.strip()
    role.permissions = permissions
    role.save()
    log_activity(actor, f'{"Created" if created else "Updated"} role "{role.name}"', {"role_id": role.pk})
    return role


def delete_role(role: Role, actor=None) -> None:
    if not role.is_deletable:
        raise RoleProtected(f'The "{role.name}" role cannot be deleted.')
    count = role.users.count()
    if count > 0:
        raise RoleProtected(f"There are {count} users with this role.")
    name = role.name
    role.delete()
    log_activity(actor, f'Deleted role "{name}"')
