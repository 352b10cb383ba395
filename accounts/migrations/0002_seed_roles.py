from django.db import migrations

from accounts.permissions import PERMISSION_IDS


def seed_roles(apps, schema_editor):
    Role = apps.get_model("accounts", "Role")

    # admin: everything
    Role.objects.get_or_create(
        name="admin",
        defaults={"permissions": {pid: True for pid in PERMISSION_IDS}},
    )

    # co-admin: everything except user, role and credential management
    restricted = {"manage-users", "manage-roles", "credentials"}
    Role.objects.get_or_create(
        name="co-admin",
        defaults={"permissions": {pid: pid not in restricted for pid in PERMISSION_IDS}},
    )


class Migration(migrations.Migration):
    dependencies = [
        ("accounts", "0001_initial"),
    ]
    operations = [
        migrations.RunPython(seed_roles, migrations.RunPython.noop),
    ]
