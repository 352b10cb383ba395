import logging

from django.contrib import messages
from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError
from django.core.files.storage import default_storage
from django.core.paginator import Paginator
from django.db import DatabaseError, connection
from django.http import JsonResponse
from django.shortcuts import get_object_or_404, redirect, render
from django.views.decorators.http import require_http_methods, require_POST

from accounts.activity import log_activity
from accounts.models import ActivityLog
from accounts.permissions import has_permission, permission_required

from . import analytics, assets, themes
from .forms import (
    CategoryForm,
    CustomThemeForm,
    PostForm,
    PostTemplateForm,
    SectionForm,
    SubcategoryForm,
)
from .models import (
    Category,
    Comment,
    CustomTheme,
    Post,
    PostEdit,
    PostTemplate,
    Section,
    Subcategory,
    Suggestion,
)
from .posts import (
    approve_edit,
    create_post,
    delete_post,
    list_posts,
    moderate_comment,
    reject_edit,
    submit_edit,
    update_post,
)
from .site_content import all_site_content, set_site_content
from .taxonomy import (
    TaxonomyInUse,
    delete_category,
    delete_section,
    delete_subcategory,
    ordered_sections,
    reorder_sections,
)

logger = logging.getLogger(__name__)

# Editable site texts shown in the panel (key, label)
SITE_CONTENT_FIELDS = [
    ("hero_title", "Home hero title"),
    ("hero_subtitle", "Home hero subtitle"),
    ("footer_text", "Footer text"),
    ("policies_html", "Policies page (HTML)"),
    ("suggestions_intro", "Suggestions page intro"),
]


def _form_errors(form) -> str:
    return "; ".join(
        f"{field}: {', '.join(errs)}" if field != "__all__" else ", ".join(errs)
        for field, errs in form.errors.items()
    )


# ---------------------------------------------------------------------------
# Dashboard
# ---------------------------------------------------------------------------

@permission_required("dashboard")
def dashboard(request):
    return render(request, "cms/panel/dashboard.html", {
        "counters": analytics.dashboard_counters(),
        "recent_activity": ActivityLog.objects.select_related("user")[:8],
    })


# ---------------------------------------------------------------------------
# Posts
# ---------------------------------------------------------------------------

def _can_edit(user, post) -> bool:
    if has_permission(user, "manage-content"):
        return True
    return post.author_id == user.pk and has_permission(user, "add-resource")


@permission_required("add-resource")
@require_http_methods(["GET", "POST"])
def post_create(request):
    can_publish = has_permission(request.user, "can_publish_posts")
    template = None
    template_id = request.GET.get("template")
    if template_id:
        template = PostTemplate.objects.filter(pk=template_id).first()

    if request.method == "POST":
        form = PostForm(request.POST, can_publish=can_publish)
        if form.is_valid():
            post = form.save(commit=False)
            if not can_publish and post.status not in (Post.STATUS_DRAFT, Post.STATUS_PENDING):
                post.status = Post.STATUS_PENDING
            try:
                create_post(post, actor=request.user)
            except ValidationError as exc:
                messages.error(request, "; ".join(exc.messages))
            else:
                messages.success(request, f'"{post.title}" saved.')
                return redirect("panel_post_edit", post_id=post.pk)
    else:
        initial = {"content": template.content} if template else {}
        form = PostForm(initial=initial, can_publish=can_publish)

    return render(request, "cms/panel/post_form.html", {
        "form": form,
        "post": None,
        "templates": PostTemplate.objects.all(),
    })


@permission_required("add-resource")
@require_http_methods(["GET", "POST"])
def post_edit(request, post_id):
    post = get_object_or_404(Post, pk=post_id)
    if not _can_edit(request.user, post):
        messages.error(request, "You can't edit this post.")
        return redirect("panel_home")

    can_publish = has_permission(request.user, "can_publish_posts")

    if request.method == "POST":
        # the form mutates its instance while validating; keep `post` pristine
        form = PostForm(request.POST, instance=Post.objects.get(pk=post.pk), can_publish=can_publish)
        if form.is_valid():
            changes = form.changes()

            if post.status == Post.STATUS_PUBLISHED and not can_publish:
                submit_edit(post, request.user, changes)
                messages.success(request, "Your changes were sent for review.")
                return redirect("panel_post_edit", post_id=post.pk)

            try:
                update_post(post, changes, actor=request.user)
            except ValidationError as exc:
                messages.error(request, "; ".join(exc.messages))
            else:
                messages.success(request, "Post updated.")
                return redirect("panel_post_edit", post_id=post.pk)
    else:
        form = PostForm(instance=post, can_publish=can_publish)

    return render(request, "cms/panel/post_form.html", {
        "form": form,
        "post": post,
        "templates": PostTemplate.objects.all(),
        "pending_edits": post.edits.filter(status=PostEdit.STATUS_PENDING),
    })


@permission_required("manage-content")
@require_POST
def post_delete(request, post_id):
    post = get_object_or_404(Post, pk=post_id)
    title = post.title
    delete_post(post, actor=request.user)
    messages.success(request, f'"{title}" deleted.')
    return redirect("panel_content")


# ---------------------------------------------------------------------------
# Pending review
# ---------------------------------------------------------------------------

@permission_required("can_publish_posts")
@require_http_methods(["GET", "POST"])
def pending(request):
    if request.method == "POST":
        action = (request.POST.get("action") or "").strip()

        if action in ("approve_edit", "reject_edit"):
            edit = get_object_or_404(PostEdit, pk=request.POST.get("edit_id"))
            try:
                if action == "approve_edit":
                    approve_edit(edit, request.user)
                    messages.success(request, "Edit approved and published.")
                else:
                    reject_edit(edit, request.user)
                    messages.success(request, "Edit rejected.")
            except (ValueError, ValidationError) as exc:
                messages.error(request, "; ".join(getattr(exc, "messages", [str(exc)])))
            return redirect("panel_pending")

        if action in ("publish", "reject_post"):
            post = get_object_or_404(Post, pk=request.POST.get("post_id"), status=Post.STATUS_PENDING)
            new_status = Post.STATUS_PUBLISHED if action == "publish" else Post.STATUS_DRAFT
            try:
                update_post(post, {"status": new_status}, actor=request.user)
            except ValidationError as exc:
                messages.error(request, "; ".join(exc.messages))
            else:
                messages.success(request, "Post published." if action == "publish" else "Post sent back to draft.")
            return redirect("panel_pending")

        messages.error(request, "Invalid action.")
        return redirect("panel_pending")

    return render(request, "cms/panel/pending.html", {
        "pending_posts": Post.objects.filter(status=Post.STATUS_PENDING).select_related("author", "section"),
        "pending_edits": PostEdit.objects.filter(status=PostEdit.STATUS_PENDING).select_related("post", "editor"),
    })


# ---------------------------------------------------------------------------
# Content management
# ---------------------------------------------------------------------------

@permission_required("manage-content")
def content(request):
    q = (request.GET.get("q") or "").strip()
    section = Section.objects.filter(pk=request.GET.get("section") or None).first()
    page_obj = list_posts(
        section=section,
        search=q,
        include_drafts=True,
        include_pending=True,
        include_scheduled=True,
        page=request.GET.get("page") or 1,
        per_page=20,
    )
    return render(request, "cms/panel/content.html", {
        "page_obj": page_obj,
        "q": q,
        "sections": ordered_sections(),
        "selected_section": section,
        "pending_comments": Comment.objects.filter(status=Comment.STATUS_PENDING).select_related("post"),
    })


@permission_required("manage-content")
@require_POST
def comment_moderate(request, comment_id):
    comment = get_object_or_404(Comment, pk=comment_id)
    try:
        moderate_comment(comment, (request.POST.get("action") or "").strip(), actor=request.user)
    except ValueError as exc:
        messages.error(request, str(exc))
    else:
        messages.success(request, "Comment updated.")
    return redirect("panel_content")


@permission_required("add-resource")
@require_http_methods(["GET", "POST"])
def post_templates(request):
    if request.method == "POST":
        action = (request.POST.get("action") or "save").strip()
        if action == "delete":
            tpl = get_object_or_404(PostTemplate, pk=request.POST.get("template_id"))
            if tpl.owner_id != request.user.pk and not has_permission(request.user, "manage-content"):
                messages.error(request, "You can only delete your own templates.")
            else:
                tpl.delete()
                messages.success(request, "Template deleted.")
            return redirect("panel_post_templates")

        form = PostTemplateForm(request.POST)
        if form.is_valid():
            tpl = form.save(commit=False)
            tpl.owner = request.user
            tpl.save()
            messages.success(request, f'Template "{tpl.name}" saved.')
            return redirect("panel_post_templates")
    else:
        form = PostTemplateForm()

    return render(request, "cms/panel/templates.html", {
        "form": form,
        "templates": PostTemplate.objects.select_related("owner"),
    })


# ---------------------------------------------------------------------------
# Taxonomy
# ---------------------------------------------------------------------------

TAXONOMY_FORMS = {
    "section": (SectionForm, Section),
    "category": (CategoryForm, Category),
    "subcategory": (SubcategoryForm, Subcategory),
}


@permission_required("manage-content")
@require_http_methods(["GET", "POST"])
def taxonomy(request):
    if request.method == "POST":
        action = (request.POST.get("action") or "").strip()
        kind = (request.POST.get("kind") or "").strip()

        if action == "reorder":
            ids = [i for i in request.POST.getlist("order") if i.isdigit()]
            reorder_sections(ids, actor=request.user)
            messages.success(request, "Sections reordered.")
            return redirect("panel_taxonomy")

        if kind not in TAXONOMY_FORMS:
            messages.error(request, "Invalid action.")
            return redirect("panel_taxonomy")

        form_cls, model = TAXONOMY_FORMS[kind]
        obj_id = request.POST.get("id")
        instance = get_object_or_404(model, pk=obj_id) if obj_id else None

        if action == "save":
            form = form_cls(request.POST, instance=instance)
            if form.is_valid():
                obj = form.save()
                log_activity(request.user, f"Saved {kind}: {obj.name}", {"id": obj.pk})
                messages.success(request, f'{kind.capitalize()} "{obj.name}" saved.')
            else:
                messages.error(request, _form_errors(form))
            return redirect("panel_taxonomy")

        if action == "delete" and instance is not None:
            target_id = request.POST.get("reassign_to") or None
            try:
                if kind == "section":
                    delete_section(instance, actor=request.user)
                elif kind == "category":
                    target = Category.objects.filter(pk=target_id).first() if target_id else None
                    delete_category(instance, reassign_to=target, actor=request.user)
                else:
                    target = Subcategory.objects.filter(pk=target_id).first() if target_id else None
                    delete_subcategory(instance, reassign_to=target, actor=request.user)
            except TaxonomyInUse as exc:
                messages.error(request, str(exc))
            else:
                messages.success(request, f"{kind.capitalize()} deleted.")
            return redirect("panel_taxonomy")

        messages.error(request, "Invalid action.")
        return redirect("panel_taxonomy")

    sections = ordered_sections().prefetch_related("categories__subcategories")
    return render(request, "cms/panel/taxonomy.html", {
        "sections": sections,
        "section_form": SectionForm(),
        "category_form": CategoryForm(),
        "subcategory_form": SubcategoryForm(),
    })


# ---------------------------------------------------------------------------
# Analytics
# ---------------------------------------------------------------------------

@permission_required("analytics")
def analytics_view(request):
    sort = (request.GET.get("sort") or analytics.DEFAULT_SORT).strip()
    if sort not in analytics.SORTS:
        sort = analytics.DEFAULT_SORT

    days = (request.GET.get("days") or "").strip()
    days = int(days) if days.isdigit() and int(days) > 0 else None

    section = Section.objects.filter(pk=request.GET.get("section") or None).first()
    category = Category.objects.filter(pk=request.GET.get("category") or None).first()
    q = (request.GET.get("q") or "").strip()

    qs = analytics.post_stats(search=q, section=section, category=category, days=days, sort=sort)
    page_obj = Paginator(qs, 25).get_page(request.GET.get("page") or 1)

    return render(request, "cms/panel/analytics.html", {
        "page_obj": page_obj,
        "totals": analytics.totals(qs),
        "top_posts": analytics.top_posts(qs),
        "sort": sort,
        "sorts": list(analytics.SORTS.keys()),
        "days": days or "",
        "q": q,
        "sections": ordered_sections(),
        "categories": Category.objects.select_related("section"),
        "selected_section": section,
        "selected_category": category,
    })


# ---------------------------------------------------------------------------
# Theme
# ---------------------------------------------------------------------------

@permission_required("manage-theme")
@require_http_methods(["GET", "POST"])
def theme(request):
    if request.method == "POST":
        action = (request.POST.get("action") or "").strip()

        if action == "activate":
            try:
                themes.set_active_theme(request.POST.get("name") or "", actor=request.user)
            except ValueError as exc:
                messages.error(request, str(exc))
            else:
                messages.success(request, "Theme activated.")
            return redirect("panel_theme")

        if action == "save":
            form = CustomThemeForm(request.POST, color_vars=themes.COLOR_VARS)
            if form.is_valid():
                try:
                    saved = themes.save_custom_theme(
                        label=form.cleaned_data["label"],
                        name=form.cleaned_data.get("name") or "",
                        colors=form.colors(),
                        actor=request.user,
                    )
                except ValueError as exc:
                    messages.error(request, str(exc))
                else:
                    messages.success(request, f'Theme "{saved.label}" saved.')
            else:
                messages.error(request, _form_errors(form))
            return redirect("panel_theme")

        if action == "delete":
            custom = get_object_or_404(CustomTheme, pk=request.POST.get("theme_id"))
            themes.delete_custom_theme(custom, actor=request.user)
            messages.success(request, "Theme deleted.")
            return redirect("panel_theme")

        messages.error(request, "Invalid action.")
        return redirect("panel_theme")

    active = themes.active_theme()
    form = CustomThemeForm(
        color_vars=themes.COLOR_VARS,
        initial_colors={var: themes.hsl_to_hex(v) for var, v in active["colors"].items()},
    )
    return render(request, "cms/panel/theme.html", {
        "themes": themes.all_themes(),
        "active": active,
        "custom_themes": CustomTheme.objects.all(),
        "form": form,
    })


# ---------------------------------------------------------------------------
# Site content
# ---------------------------------------------------------------------------

@permission_required("manage-site-content")
@require_http_methods(["GET", "POST"])
def site_content(request):
    if request.method == "POST":
        changed = []
        for key, _label in SITE_CONTENT_FIELDS:
            if key in request.POST:
                set_site_content(key, request.POST.get(key) or "")
                changed.append(key)
        log_activity(request.user, "Updated site content", {"keys": changed})
        messages.success(request, "Site content saved.")
        return redirect("panel_site_content")

    values = all_site_content()
    return render(request, "cms/panel/site_content.html", {
        "fields": [(key, label, values.get(key, "")) for key, label in SITE_CONTENT_FIELDS],
    })


# ---------------------------------------------------------------------------
# Assets
# ---------------------------------------------------------------------------

@permission_required("manage-assets")
@require_http_methods(["GET", "POST"])
def assets_view(request):
    folder = (request.GET.get("folder") or request.POST.get("folder") or "").strip("/")

    if request.method == "POST":
        action = (request.POST.get("action") or "").strip()
        try:
            if action == "upload":
                uploaded = request.FILES.getlist("files")
                for f in uploaded:
                    assets.upload_asset(f, folder, actor=request.user)
                messages.success(request, f"{len(uploaded)} file(s) uploaded.")
            elif action == "delete":
                count = assets.delete_assets(request.POST.getlist("paths"), actor=request.user)
                messages.success(request, f"{count} file(s) deleted.")
            elif action == "cleanup":
                deleted = assets.cleanup_orphans(actor=request.user)
                messages.success(request, f"{len(deleted)} orphan image(s) deleted.")
            else:
                messages.error(request, "Invalid action.")
        except ValueError as exc:
            messages.error(request, str(exc))
        return redirect(f"{request.path}?folder={folder}" if folder else request.path)

    try:
        listing = assets.list_assets(folder)
    except ValueError:
        messages.error(request, "Invalid folder.")
        return redirect("panel_assets")

    files = [a for a in listing if not a.is_folder]
    orphans, _ = assets.classify_assets(files, assets.referenced_urls())
    orphan_paths = {a.path for a in orphans}

    return render(request, "cms/panel/assets.html", {
        "folder": folder,
        "assets": listing,
        "orphan_paths": orphan_paths,
        "parent": folder.rsplit("/", 1)[0] if "/" in folder else "",
    })


@permission_required("add-resource")
@require_POST
def asset_upload_data_url(request):
    """JSON endpoint used by the editor for pasted/cropped images."""
    try:
        asset = assets.upload_data_url(
            request.POST.get("data_url") or "",
            folder=(request.POST.get("folder") or "").strip("/"),
            name=request.POST.get("name") or "image",
            actor=request.user,
        )
    except ValueError as exc:
        return JsonResponse({"error": str(exc)}, status=400)
    return JsonResponse({"url": asset.url, "path": asset.path})


# ---------------------------------------------------------------------------
# System health
# ---------------------------------------------------------------------------

HEALTH_MODELS = (Post, Section, Category, Subcategory, Comment, PostEdit, Suggestion, ActivityLog)


@permission_required("manage-resources")
def health(request):
    checks = {}

    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
        checks["database"] = {"ok": True, "detail": connection.vendor}
    except DatabaseError as exc:
        logger.exception("Database health check failed")
        checks["database"] = {"ok": False, "detail": str(exc)}

    try:
        root = assets.assets_root()
        exists = default_storage.exists(root)
        checks["storage"] = {"ok": True, "detail": root if exists else f"{root} (empty)"}
    except OSError as exc:
        logger.exception("Storage health check failed")
        checks["storage"] = {"ok": False, "detail": str(exc)}

    counts = []
    if checks["database"]["ok"]:
        for model in (get_user_model(),) + HEALTH_MODELS:
            counts.append((model._meta.verbose_name_plural.title(), model.objects.count()))

    return render(request, "cms/panel/health.html", {"checks": checks, "counts": counts})


# ---------------------------------------------------------------------------
# Suggestions
# ---------------------------------------------------------------------------

@permission_required("manage-suggestions")
@require_http_methods(["GET", "POST"])
def suggestions_panel(request):
    if request.method == "POST":
        suggestion = get_object_or_404(Suggestion, pk=request.POST.get("suggestion_id"))
        suggestion.delete()
        log_activity(request.user, "Deleted a suggestion")
        messages.success(request, "Suggestion deleted.")
        return redirect("panel_suggestions")

    page_obj = Paginator(Suggestion.objects.all(), 25).get_page(request.GET.get("page") or 1)
    return render(request, "cms/panel/suggestions.html", {"page_obj": page_obj})
