from django.urls import path
from . import views

urlpatterns = [
    path("users/", views.users_list, name="panel_users"),
    path("roles/", views.roles_list, name="panel_roles"),
    path("roles/new/", views.role_edit, name="panel_role_create"),
    path("roles/<int:role_id>/edit/", views.role_edit, name="panel_role_edit"),
    path("roles/<int:role_id>/delete/", views.role_delete, name="panel_role_delete"),
    path("activity/", views.activity_log, name="panel_activity"),
    path("activity/<int:log_id>/delete/", views.activity_delete, name="panel_activity_delete"),
]
