from django.contrib import admin
from django.contrib.sitemaps.views import sitemap
from django.urls import path, include
from django.conf import settings
from django.urls import re_path
from django.views.static import serve as django_serve
import os

from cms.sitemaps import sitemaps
from cms.urls import taxonomy_urlpatterns


urlpatterns = [
    path("admin/", admin.site.urls),

    path("sitemap.xml", sitemap, {"sitemaps": sitemaps}, name="sitemap"),

    path("accounts/", include("accounts.urls")),

    # Control panel
    path("panel/", include("cms.panel_urls")),
    path("panel/", include("accounts.panel_urls")),
    path("panel/", include("billing.panel_urls")),
    path("panel/assistant/", include("assistant.urls")),

    # Public site
    path("", include("billing.urls")),
    path("", include("cms.urls")),
]

if settings.DEBUG or os.getenv("SERVE_MEDIA", "0") == "1":
    urlpatterns += [
        re_path(r"^media/(?P<path>.*)$", django_serve, {"document_root": settings.MEDIA_ROOT}),
    ]

# /<section>/[<category>/[<subcategory>/]] must stay last
urlpatterns += taxonomy_urlpatterns
