from datetime import timedelta
from decimal import Decimal

import pytest
from django.utils import timezone

from accounts.models import Role, User
from accounts.permissions import PERMISSION_IDS
from cms.models import Category, Post, Section, Subcategory


def _perms(*granted):
    return {pid: pid in granted for pid in PERMISSION_IDS}


@pytest.fixture(autouse=True)
def _isolated_settings(settings, tmp_path):
    settings.MEDIA_ROOT = tmp_path / "media"
    settings.MEDIA_URL = "/media/"
    settings.EMAIL_BACKEND = "django.core.mail.backends.locmem.EmailBackend"
    settings.SUPERADMIN_NOTIFY_EMAILS = []
    settings.RAZORPAY_KEY_ID = ""
    settings.RAZORPAY_KEY_SECRET = ""
    settings.RAZORPAY_WEBHOOK_SECRET = ""
    settings.PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]
    return settings


@pytest.fixture
def razorpay_keys(settings):
    settings.RAZORPAY_KEY_ID = "rzp_test_key"
    settings.RAZORPAY_KEY_SECRET = "rzp_test_secret"
    settings.RAZORPAY_WEBHOOK_SECRET = "whsec_test"
    return settings


@pytest.fixture
def admin_role(db):
    return Role.objects.create(name=Role.NAME_ADMIN, permissions=_perms(*PERMISSION_IDS))


@pytest.fixture
def co_admin_role(db):
    return Role.objects.create(
        name=Role.NAME_CO_ADMIN,
        permissions=_perms(*[p for p in PERMISSION_IDS if p not in ("manage-roles", "credentials")]),
    )


@pytest.fixture
def editor_role(db):
    return Role.objects.create(name="editor", permissions=_perms("dashboard", "add-resource"))


@pytest.fixture
def make_user(db):
    def _make(email, password="pass12345", role=None, **extra):
        return User.objects.create_user(email=email, password=password, role=role, **extra)
    return _make


@pytest.fixture
def superadmin(db):
    return User.objects.create_superuser(email="root@example.com", password="pass12345")


@pytest.fixture
def admin_user(make_user, admin_role):
    return make_user("admin@example.com", role=admin_role)


@pytest.fixture
def editor(make_user, editor_role):
    return make_user("editor@example.com", role=editor_role)


@pytest.fixture
def superadmin_client(client, superadmin):
    client.force_login(superadmin)
    return client


@pytest.fixture
def editor_client(client, editor):
    client.force_login(editor)
    return client


@pytest.fixture
def section(db):
    return Section.objects.create(name="Guides", plural_name="Guides", order=0)


@pytest.fixture
def category(section):
    return Category.objects.create(section=section, name="Python")


@pytest.fixture
def subcategory(category):
    return Subcategory.objects.create(category=category, name="Django")


@pytest.fixture
def make_post(section):
    def _make(title="A post", status=Post.STATUS_PUBLISHED, **fields):
        fields.setdefault("section", section)
        return Post.objects.create(title=title, status=status, **fields)
    return _make


@pytest.fixture
def published_post(make_post):
    return make_post("Published post", content="<p>Hello</p>")


@pytest.fixture
def premium_post(make_post):
    return make_post(
        "Premium pack",
        is_premium=True,
        price=Decimal("10.00"),
        currency="USD",
        download_url="https://files.example.com/pack.zip",
    )


@pytest.fixture
def past():
    return timezone.now() - timedelta(hours=1)


@pytest.fixture
def future():
    return timezone.now() + timedelta(days=1)
