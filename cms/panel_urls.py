from django.urls import path
from . import panel_views as views

urlpatterns = [
    path("", views.dashboard, name="panel_home"),
    path("posts/new/", views.post_create, name="panel_post_create"),
    path("posts/<int:post_id>/edit/", views.post_edit, name="panel_post_edit"),
    path("posts/<int:post_id>/delete/", views.post_delete, name="panel_post_delete"),
    path("posts/templates/", views.post_templates, name="panel_post_templates"),
    path("pending/", views.pending, name="panel_pending"),
    path("content/", views.content, name="panel_content"),
    path("comments/<int:comment_id>/", views.comment_moderate, name="panel_comment_moderate"),
    path("taxonomy/", views.taxonomy, name="panel_taxonomy"),
    path("analytics/", views.analytics_view, name="panel_analytics"),
    path("theme/", views.theme, name="panel_theme"),
    path("site-content/", views.site_content, name="panel_site_content"),
    path("assets/", views.assets_view, name="panel_assets"),
    path("assets/data-url/", views.asset_upload_data_url, name="panel_asset_data_url"),
    path("health/", views.health, name="panel_health"),
    path("suggestions/", views.suggestions_panel, name="panel_suggestions"),
]
