from django.urls import path
from .views import (
    VortexLoginView,
    logout_view,
    register,
    verify_email,
    forgot_password,
)

urlpatterns = [
    path("login/", VortexLoginView.as_view(), name="login"),
    path("logout/", logout_view, name="logout"),
    path("register/", register, name="register"),
    path("verify/", verify_email, name="verify_email"),
    path("forgot-password/", forgot_password, name="forgot_password"),
]
