import hashlib
import secrets
from datetime import timedelta

from django.conf import settings
from django.contrib.auth.models import AbstractUser, BaseUserManager
from django.core.mail import send_mail
from django.db import models
from django.utils import timezone

from .permissions import normalize_permissions


class Role(models.Model):
    NAME_ADMIN = "admin"
    NAME_CO_ADMIN = "co-admin"

    # admin can't be edited; admin and co-admin can't be deleted
    LOCKED_NAMES = (NAME_ADMIN,)
    UNDELETABLE_NAMES = (NAME_ADMIN, NAME_CO_ADMIN)

    name = models.CharField(max_length=64, unique=True)
    permissions = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["name"]

    def __str__(self):
        return self.name

    @property
    def is_locked(self) -> bool:
        return self.name in self.LOCKED_NAMES

    @property
    def is_deletable(self) -> bool:
        return self.name not in self.UNDELETABLE_NAMES

    def grants(self, perm: str) -> bool:
        return bool(normalize_permissions(self.permissions).get(perm))

    def save(self, *args, **kwargs):
        # stored mapping always carries exactly the catalogue ids
        self.permissions = normalize_permissions(self.permissions)
        super().save(*args, **kwargs)


class UserManager(BaseUserManager):
    """Email-keyed manager; addresses are stored lower-cased."""

    use_in_migrations = True

    def _create_user(self, email, password, **extra_fields):
        if not email:
            raise ValueError("An email address is required")
        user = self.model(email=self.normalize_email(email).lower(), **extra_fields)
        user.set_password(password)
        user.save(using=self._db)
        return user

    def create_user(self, email, password=None, **extra_fields):
        extra_fields.setdefault("is_staff", False)
        extra_fields.setdefault("is_superuser", False)
        return self._create_user(email, password, **extra_fields)

    def create_superuser(self, email, password=None, **extra_fields):
        # the superadmin is also the Django admin user
        extra_fields.update(is_staff=True, is_superuser=True, email_is_verified=True)
        return self._create_user(email, password, **extra_fields)


class User(AbstractUser):
    # email is the login
    username = None
    email = models.EmailField(unique=True)
    email_is_verified = models.BooleanField(default=False)
    email_verified_at = models.DateTimeField(null=True, blank=True)

    role = models.ForeignKey(
        Role,
        related_name="users",
        null=True,
        blank=True,
        on_delete=models.PROTECT,
    )

    USERNAME_FIELD = "email"
    REQUIRED_FIELDS = []

    objects = UserManager()

    def __str__(self):
        return self.email

    @property
    def is_superadmin(self) -> bool:
        return bool(self.is_superuser)

    @property
    def role_name(self) -> str:
        return self.role.name if self.role_id else ""


class ActivityLog(models.Model):
    ANONYMOUS_EMAIL = "Anonymous/System"

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True, blank=True,
        on_delete=models.SET_NULL,
        related_name="activity",
    )
    user_email = models.CharField(max_length=254, default=ANONYMOUS_EMAIL)
    action = models.CharField(max_length=500)
    details = models.JSONField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at", "-id"]

    def __str__(self):
        return f"{self.user_email}: {self.action}"


class EmailOTP(models.Model):
    PURPOSE_VERIFY = "VERIFY_EMAIL"
    PURPOSE_RESET = "RESET_PASSWORD"
    PURPOSE_CHOICES = [
        (PURPOSE_VERIFY, "Verify Email"),
        (PURPOSE_RESET, "Reset Password"),
    ]
    SUBJECTS = {
        PURPOSE_VERIFY: "Your Vortex verification code",
        PURPOSE_RESET: "Your Vortex password reset code",
    }
    TTL_MINUTES = 10
    MAX_ATTEMPTS = 5

    email = models.EmailField(db_index=True)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True, blank=True,
        on_delete=models.SET_NULL,
        related_name="email_otps"
    )
    purpose = models.CharField(max_length=32, choices=PURPOSE_CHOICES)
    otp_hash = models.CharField(max_length=128)
    attempts = models.PositiveIntegerField(default=0)
    expires_at = models.DateTimeField()
    consumed_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=["email", "purpose", "-created_at"], name="accounts_otp_lookup_idx"),
        ]

    def __str__(self):
        return f"{self.purpose} code for {self.email}"

    @staticmethod
    def digest(code: str) -> str:
        # keyed with SECRET_KEY so stored hashes are useless without it
        return hashlib.sha256(f"{settings.SECRET_KEY}:{code}".encode("utf-8")).hexdigest()

    @property
    def usable(self) -> bool:
        return (
            self.consumed_at is None
            and timezone.now() < self.expires_at
            and self.attempts < self.MAX_ATTEMPTS
        )

    @classmethod
    def create_otp(cls, *, email: str, purpose: str, user=None):
        code = f"{secrets.randbelow(1_000_000):06d}"
        row = cls.objects.create(
            email=email,
            user=user,
            purpose=purpose,
            otp_hash=cls.digest(code),
            expires_at=timezone.now() + timedelta(minutes=cls.TTL_MINUTES),
        )
        return row, code

    @classmethod
    def send_code(cls, *, email: str, purpose: str, user=None):
        """Issues a fresh code and mails it; raises if the mail backend fails."""
        row, code = cls.create_otp(email=email, purpose=purpose, user=user)
        send_mail(
            subject=cls.SUBJECTS[purpose],
            message=f"Your code is {code}. It expires in {cls.TTL_MINUTES} minutes.",
            from_email=None,
            recipient_list=[email],
        )
        return row

    @classmethod
    def check_latest(cls, *, email: str, purpose: str, code: str) -> bool:
        """Only the most recent code for (email, purpose) is ever accepted."""
        row = cls.objects.filter(email=email, purpose=purpose).order_by("-created_at").first()
        return row is not None and row.verify(code)

    def verify(self, code: str) -> bool:
        if not self.usable:
            return False
        self.attempts += 1
        if self.otp_hash == self.digest(code):
            self.consumed_at = timezone.now()
        self.save(update_fields=["attempts", "consumed_at"])
        return self.consumed_at is not None
