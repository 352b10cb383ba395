from django.conf import settings
from django.contrib import messages
from django.http import Http404
from django.shortcuts import render, get_object_or_404, redirect
from django.views.decorators.http import require_POST, require_http_methods

from accounts.permissions import has_permission

from .forms import CommentForm, SuggestionForm
from .models import Post, Section, Comment
from .posts import (
    add_comment,
    comment_threads,
    downloadable_posts,
    featured_posts,
    increment_stat,
    list_posts,
    random_posts,
)
from .sanitize import sanitize_post_html
from .site_content import get_site_content
from .taxonomy import resolve_taxonomy

PURCHASED_SESSION_KEY = "purchased_posts"


def home(request):
    recent = list_posts(page=1, per_page=6)
    return render(request, "cms/home.html", {
        "featured": featured_posts(limit=3, with_image=True),
        "recent_posts": recent.object_list,
        "downloads": downloadable_posts(6),
        "hero_title": get_site_content("hero_title", "Vortex"),
        "hero_subtitle": get_site_content("hero_subtitle", ""),
    })


def taxonomy_listing(request, section_slug, category_slug=None, subcategory_slug=None):
    """
    Paginated listing for /<section>/[<category>/[<subcategory>/]].
    Optional ?q= search on title and excerpt.
    """
    ctx = resolve_taxonomy(section_slug, category_slug, subcategory_slug)
    q = (request.GET.get("q") or "").strip()
    page_obj = list_posts(
        section=ctx["section"],
        category=ctx["category"],
        subcategory=ctx["subcategory"],
        search=q,
        page=request.GET.get("page") or 1,
    )
    ctx.update({"page_obj": page_obj, "q": q})
    return render(request, "cms/post_list.html", ctx)


def resources(request):
    section = Section.objects.filter(slug=settings.RESOURCES_SECTION_SLUG).first()
    if section is None:
        raise Http404("Resources section not configured")
    q = (request.GET.get("q") or "").strip()
    page_obj = list_posts(section=section, search=q, page=request.GET.get("page") or 1)
    return render(request, "cms/post_list.html", {
        "section": section,
        "title": section.name,
        "description": section.description,
        "base_path": "/resources/",
        "plural": section.plural_name or "Resources",
        "page_obj": page_obj,
        "q": q,
    })


def _viewable_post(request, slug):
    post = get_object_or_404(
        Post.objects.select_related("section", "category", "subcategory", "author"),
        slug=slug,
    )
    if not post.is_visible() and not has_permission(request.user, "manage-content"):
        raise Http404("Post not found")
    return post


def _has_purchased(request, post) -> bool:
    return post.pk in (request.session.get(PURCHASED_SESSION_KEY) or [])


def post_detail(request, slug):
    post = _viewable_post(request, slug)

    if post.is_visible():
        increment_stat(post, "visits")

    return render(request, "cms/post_detail.html", {
        "post": post,
        "threads": comment_threads(post) if post.comments_enabled else [],
        "comment_form": CommentForm(),
        "related": random_posts(3, with_image=True, exclude=post),
        "purchased": _has_purchased(request, post),
    })


@require_POST
def post_comment(request, slug):
    post = _viewable_post(request, slug)
    form = CommentForm(request.POST)
    if not form.is_valid():
        messages.error(request, "Name and comment are required.")
        return redirect("post_detail", slug=post.slug)

    parent = None
    parent_id = form.cleaned_data.get("parent_id")
    if parent_id:
        parent = Comment.objects.filter(pk=parent_id, post=post).first()

    try:
        add_comment(
            post,
            author_name=form.cleaned_data["author_name"],
            content=form.cleaned_data["content"],
            user=request.user,
            parent=parent,
        )
    except ValueError as exc:
        messages.error(request, str(exc))
    else:
        messages.success(request, "Thanks! Your comment is awaiting moderation.")
    return redirect("post_detail", slug=post.slug)


def post_download(request, slug):
    post = _viewable_post(request, slug)
    if not post.download_url:
        raise Http404("No download for this post")

    if post.is_premium and not _has_purchased(request, post) and not has_permission(request.user, "manage-content"):
        messages.info(request, "This resource is premium. Complete the purchase to download it.")
        return redirect("checkout", slug=post.slug)

    increment_stat(post, "downloads")
    return redirect(post.download_url)


@require_http_methods(["GET", "POST"])
def suggestions(request):
    form = SuggestionForm(request.POST or None)
    if request.method == "POST" and form.is_valid():
        form.save()
        messages.success(request, "Thank you for your suggestion!")
        return redirect("suggestions")
    return render(request, "cms/suggestions.html", {"form": form})


def policies(request):
    return render(request, "cms/policies.html", {
        "policies_html": sanitize_post_html(get_site_content("policies_html", "")),
    })
