from django import forms
from django.contrib.auth.forms import AuthenticationForm

from .models import Role, User
from .permissions import PERMISSIONS, normalize_permissions


class LoginForm(AuthenticationForm):
    username = forms.EmailField(label="Email", widget=forms.EmailInput(attrs={"autofocus": True}))

    def clean_username(self):
        return self.cleaned_data["username"].strip().lower()


class SignupForm(forms.Form):
    email = forms.EmailField()
    password1 = forms.CharField(label="Password", widget=forms.PasswordInput, min_length=8)
    password2 = forms.CharField(label="Confirm password", widget=forms.PasswordInput)

    def clean_email(self):
        email = self.cleaned_data["email"].strip().lower()
        if User.objects.filter(email__iexact=email).exists():
            raise forms.ValidationError("An account with this email already exists.")
        return email

    def clean(self):
        cleaned = super().clean()
        if cleaned.get("password1") != cleaned.get("password2"):
            raise forms.ValidationError("Passwords do not match.")
        return cleaned


class RoleForm(forms.Form):
    """Role name plus one checkbox per catalogue permission."""

    name = forms.CharField(max_length=64)

    def __init__(self, *args, role=None, **kwargs):
        self.role = role
        if role is not None and "initial" not in kwargs:
            initial = {"name": role.name}
            for pid, enabled in normalize_permissions(role.permissions).items():
                initial[f"perm_{pid}"] = enabled
            kwargs["initial"] = initial
        super().__init__(*args, **kwargs)
        for pid, label in PERMISSIONS:
            self.fields[f"perm_{pid}"] = forms.BooleanField(label=label, required=False)

    def clean_name(self):
        name = self.cleaned_data["name"].strip()
        qs = Role.objects.filter(name__iexact=name)
        if self.role is not None:
            qs = qs.exclude(pk=self.role.pk)
        if qs.exists():
            raise forms.ValidationError("A role with this name already exists.")
        return name

    def permission_values(self):
        return {pid: bool(self.cleaned_data.get(f"perm_{pid}")) for pid, _ in PERMISSIONS}

    def permission_fields(self):
        return [self[f"perm_{pid}"] for pid, _ in PERMISSIONS]


class UserCreateForm(forms.Form):
    email = forms.EmailField()
    password = forms.CharField(widget=forms.PasswordInput, min_length=8)
    role = forms.ModelChoiceField(queryset=Role.objects.all(), required=False)

    def clean_email(self):
        email = self.cleaned_data["email"].strip().lower()
        if User.objects.filter(email__iexact=email).exists():
            raise forms.ValidationError("An account with this email already exists.")
        return email


class UserRoleForm(forms.Form):
    role = forms.ModelChoiceField(queryset=Role.objects.all(), required=False)


class UserPasswordForm(forms.Form):
    password = forms.CharField(widget=forms.PasswordInput, min_length=8)
