from django.urls import path
from . import views

urlpatterns = [
    path("", views.home, name="home"),
    path("resources/", views.resources, name="resources"),
    path("suggestions/", views.suggestions, name="suggestions"),
    path("policies/", views.policies, name="policies"),
    path("post/<slug:slug>/", views.post_detail, name="post_detail"),
    path("post/<slug:slug>/comment/", views.post_comment, name="post_comment"),
    path("post/<slug:slug>/download/", views.post_download, name="post_download"),
]

# catch-all taxonomy listings; include last from the root urlconf
taxonomy_urlpatterns = [
    path("<slug:section_slug>/", views.taxonomy_listing, name="taxonomy_section"),
    path("<slug:section_slug>/<slug:category_slug>/", views.taxonomy_listing, name="taxonomy_category"),
    path(
        "<slug:section_slug>/<slug:category_slug>/<slug:subcategory_slug>/",
        views.taxonomy_listing,
        name="taxonomy_subcategory",
    ),
]
