from django.conf import settings
from django.contrib import messages
from django.contrib.auth import login, logout
from django.contrib.auth.decorators import login_required
from django.contrib.auth.views import LoginView
from django.core.paginator import Paginator
from django.shortcuts import get_object_or_404, redirect, render
from django.utils import timezone
from django.views.decorators.http import require_http_methods, require_POST

from .activity import log_activity
from .forms import (
    LoginForm,
    RoleForm,
    SignupForm,
    UserCreateForm,
    UserPasswordForm,
    UserRoleForm,
)
from .models import ActivityLog, EmailOTP, Role, User
from .permissions import permission_required
from .users import (
    RoleProtected,
    UserHasPosts,
    assign_role,
    create_user_with_role,
    delete_role,
    delete_user,
    list_users,
    save_role,
    set_user_password,
    transfer_superadmin,
)


class VortexLoginView(LoginView):
    authentication_form = LoginForm
    template_name = "accounts/login.html"

    def form_valid(self, form):
        response = super().form_valid(form)
        log_activity(self.request.user, "Logged in")
        return response


def logout_view(request):
    if request.user.is_authenticated:
        log_activity(request.user, "Logged out")
    logout(request)
    return redirect("login")


@require_http_methods(["GET", "POST"])
def register(request):
    """
    Public sign-up. New accounts start without a role, so the panel shows
    nothing until an admin assigns one.
    """
    if request.method == "POST":
        form = SignupForm(request.POST)
        if form.is_valid():
            user = User.objects.create_user(
                email=form.cleaned_data["email"],
                password=form.cleaned_data["password1"],
            )
            log_activity(user, "Registered an account")
            login(request, user)
            return redirect("verify_email")
    else:
        form = SignupForm()

    return render(request, "accounts/register.html", {"form": form})


@login_required
@require_http_methods(["GET", "POST"])
def verify_email(request):
    user = request.user
    if user.email_is_verified:
        messages.info(request, "Your email is already verified.")
        return redirect(settings.LOGIN_REDIRECT_URL)

    # every GET issues a fresh code
    if request.method == "GET":
        EmailOTP.send_code(email=user.email, purpose=EmailOTP.PURPOSE_VERIFY, user=user)
        return render(request, "accounts/verify_email.html", {"email": user.email})

    code = (request.POST.get("otp") or "").strip()
    if not EmailOTP.check_latest(email=user.email, purpose=EmailOTP.PURPOSE_VERIFY, code=code):
        messages.error(request, "Invalid or expired code. Please try again.")
        return redirect("verify_email")

    user.email_is_verified = True
    user.email_verified_at = timezone.now()
    user.save(update_fields=["email_is_verified", "email_verified_at"])
    log_activity(user, "Verified email")
    messages.success(request, "Email verified successfully.")
    return redirect(settings.LOGIN_REDIRECT_URL)


RESET_SESSION_KEYS = ("fp_email", "fp_password")


def _reset_step(request, step, email=""):
    return render(request, "accounts/forgot_password.html", {"step": step, "email": email})


@require_http_methods(["GET", "POST"])
def forgot_password(request):
    """
    Two steps on one page: ``send_otp`` takes the email and the new password
    and mails a code, ``confirm_reset`` checks the code and applies the password.
    """
    if request.method == "GET":
        for key in RESET_SESSION_KEYS:
            request.session.pop(key, None)
        return _reset_step(request, "start")

    action = (request.POST.get("action") or "").strip()

    if action == "send_otp":
        email = (request.POST.get("email") or "").strip().lower()
        password = request.POST.get("password1") or ""
        if not email:
            messages.error(request, "Enter your email.")
            return redirect("forgot_password")
        if not password or password != request.POST.get("password2"):
            messages.error(request, "Passwords do not match.")
            return _reset_step(request, "start", email)

        user = User.objects.filter(email=email).first()
        if user is not None:
            EmailOTP.send_code(email=email, purpose=EmailOTP.PURPOSE_RESET, user=user)
            request.session["fp_email"] = email
            request.session["fp_password"] = password
        # same answer whether or not the account exists
        messages.info(request, "If that email exists, we sent a code.")
        return _reset_step(request, "otp", email)

    if action == "confirm_reset":
        email = request.session.get("fp_email") or ""
        password = request.session.get("fp_password") or ""
        user = User.objects.filter(email=email).first() if email else None
        if user is None or not password:
            messages.error(request, "Session expired. Please try again.")
            return redirect("forgot_password")

        code = (request.POST.get("otp") or "").strip()
        if not EmailOTP.check_latest(email=email, purpose=EmailOTP.PURPOSE_RESET, code=code):
            messages.error(request, "Invalid or expired code.")
            return _reset_step(request, "otp", email)

        user.set_password(password)
        user.save(update_fields=["password"])
        for key in RESET_SESSION_KEYS:
            request.session.pop(key, None)
        log_activity(user, "Reset password")
        messages.success(request, "Password updated. Please log in.")
        return redirect("login")

    messages.error(request, "Invalid action.")
    return redirect("forgot_password")


# ---------------------------------------------------------------------------
# Control panel: users
# ---------------------------------------------------------------------------

@permission_required("manage-users")
@require_http_methods(["GET", "POST"])
def users_list(request):
    create_form = UserCreateForm(request.POST or None) if request.POST.get("action") == "create" else UserCreateForm()

    if request.method == "POST":
        action = (request.POST.get("action") or "").strip()

        if action == "create":
            if create_form.is_valid():
                user = create_user_with_role(
                    email=create_form.cleaned_data["email"],
                    password=create_form.cleaned_data["password"],
                    role=create_form.cleaned_data["role"],
                    actor=request.user,
                )
                messages.success(request, f"{user.email} created.")
                return redirect("panel_users")
        else:
            target = get_object_or_404(User, pk=request.POST.get("user_id"))

            if action == "role":
                form = UserRoleForm(request.POST)
                if form.is_valid():
                    if target.is_superuser and not request.user.is_superuser:
                        messages.error(request, "Only the SuperAdmin can change this account.")
                    else:
                        assign_role(target, form.cleaned_data["role"], actor=request.user)
                        messages.success(request, f"Role updated for {target.email}.")
                return redirect("panel_users")

            if action == "password":
                form = UserPasswordForm(request.POST)
                if target.is_superuser and not request.user.is_superuser:
                    messages.error(request, "Only the SuperAdmin can change this account.")
                elif form.is_valid():
                    set_user_password(target, form.cleaned_data["password"], actor=request.user)
                    messages.success(request, f"Password updated for {target.email}.")
                else:
                    messages.error(request, "Password must be at least 8 characters.")
                return redirect("panel_users")

            if action == "delete":
                if target.pk == request.user.pk or target.is_superuser:
                    messages.error(request, "This account cannot be deleted.")
                    return redirect("panel_users")
                try:
                    delete_user(target, actor=request.user)
                except UserHasPosts:
                    messages.error(request, f"{target.email} has posts. Reassign or delete them first.")
                else:
                    messages.success(request, "User deleted.")
                return redirect("panel_users")

            if action == "transfer":
                try:
                    transfer_superadmin(request.user, target)
                except PermissionError as exc:
                    messages.error(request, str(exc))
                else:
                    messages.success(request, f"SuperAdmin transferred to {target.email}.")
                return redirect("panel_users")

            messages.error(request, "Invalid action.")
            return redirect("panel_users")

    return render(request, "accounts/users.html", {
        "users": list_users(),
        "roles": Role.objects.all(),
        "create_form": create_form,
    })


# ---------------------------------------------------------------------------
# Control panel: roles
# ---------------------------------------------------------------------------

@permission_required("manage-roles")
def roles_list(request):
    return render(request, "accounts/roles.html", {
        "roles": Role.objects.all(),
    })


@permission_required("manage-roles")
@require_http_methods(["GET", "POST"])
def role_edit(request, role_id=None):
    role = get_object_or_404(Role, pk=role_id) if role_id else None

    if role is not None and role.is_locked:
        messages.error(request, f'The "{role.name}" role cannot be edited.')
        return redirect("panel_roles")

    if request.method == "POST":
        form = RoleForm(request.POST, role=role)
        if form.is_valid():
            saved = save_role(
                name=form.cleaned_data["name"],
                permissions=form.permission_values(),
                role=role,
                actor=request.user,
            )
            messages.success(request, f'Role "{saved.name}" saved.')
            return redirect("panel_roles")
    else:
        form = RoleForm(role=role)

    return render(request, "accounts/role_form.html", {"form": form, "role": role})


@permission_required("manage-roles")
@require_POST
def role_delete(request, role_id):
    role = get_object_or_404(Role, pk=role_id)
    try:
        delete_role(role, actor=request.user)
    except RoleProtected as exc:
        messages.error(request, f"Cannot delete: {exc}")
    else:
        messages.success(request, "Role deleted.")
    return redirect("panel_roles")


# ---------------------------------------------------------------------------
# Control panel: activity log
# ---------------------------------------------------------------------------

@permission_required("activity-log")
def activity_log(request):
    qs = ActivityLog.objects.all()

    q = (request.GET.get("q") or "").strip()
    if q:
        qs = qs.filter(action__icontains=q)

    paginator = Paginator(qs, 25)
    page_obj = paginator.get_page(request.GET.get("page") or 1)

    return render(request, "accounts/activity_log.html", {"page_obj": page_obj, "q": q})


@permission_required("activity-log")
@require_POST
def activity_delete(request, log_id):
    entry = get_object_or_404(ActivityLog, pk=log_id)
    silent = request.POST.get("silent") == "1"
    action = entry.action
    entry.delete()
    if not silent:
        log_activity(request.user, "Deleted an activity log entry", {"action": action})
    messages.success(request, "Entry deleted.")
    return redirect("panel_activity")
