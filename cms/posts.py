# cms/posts.py
from __future__ import annotations

import logging
import random
from decimal import Decimal, InvalidOperation
from smtplib import SMTPException

from django.conf import settings
from django.core.mail import send_mail
from django.core.paginator import Paginator
from django.db import transaction
from django.db.models import F, Q
from django.utils import timezone
from django.utils.dateparse import parse_datetime

from accounts.activity import log_activity

from .models import Post, PostEdit, PostStat, Comment

logger = logging.getLogger(__name__)

DEFAULT_PER_PAGE = 9
STAT_KINDS = ("visits", "downloads")

# Fields a create/update/edit proposal may touch. FKs go by their *_id column.
EDITABLE_FIELDS = (
    "title", "slug", "excerpt", "content",
    "main_image_url", "image_description",
    "custom_author_name", "show_author", "show_date",
    "status", "section_id", "category_id", "subcategory_id",
    "is_premium", "price", "currency", "is_discount_active", "discount_percentage",
    "download_url", "comments_enabled", "custom_fields", "is_featured",
    "keywords", "meta_title", "meta_description", "published_at",
)


# ---------- queries ----------

def list_posts(
    *,
    section=None,
    category=None,
    subcategory=None,
    search: str = "",
    include_drafts: bool = False,
    include_pending: bool = False,
    include_scheduled: bool = False,
    author=None,
    page=1,
    per_page: int = DEFAULT_PER_PAGE,
):
    """
    Page of posts, newest first. Without any include_* flag only publicly
    visible posts are returned; the flags widen the set for panel listings.
    """
    visible = Q(status=Post.STATUS_PUBLISHED) | Q(status=Post.STATUS_SCHEDULED, published_at__lte=timezone.now())
    if include_drafts:
        visible |= Q(status=Post.STATUS_DRAFT)
    if include_pending:
        visible |= Q(status=Post.STATUS_PENDING)
    if include_scheduled:
        visible |= Q(status=Post.STATUS_SCHEDULED)

    qs = Post.objects.filter(visible).select_related("section", "category", "subcategory", "author")

    if section is not None:
        qs = qs.filter(section=section)
    if category is not None:
        qs = qs.filter(category=category)
    if subcategory is not None:
        qs = qs.filter(subcategory=subcategory)
    if author is not None:
        qs = qs.filter(author=author)

    search = (search or "").strip()
    if search:
        qs = qs.filter(Q(title__icontains=search) | Q(excerpt__icontains=search))

    qs = qs.order_by("-created_at", "-id")
    paginator = Paginator(qs, per_page)
    return paginator.get_page(page)


def featured_posts(limit: int = 3, with_image: bool = False):
    qs = Post.objects.visible().filter(is_featured=True)
    if with_image:
        qs = qs.with_image()
    return list(qs.select_related("section").order_by("-created_at", "-id")[:limit])


def random_posts(count: int = 3, with_image: bool = False, exclude=None):
    qs = Post.objects.visible()
    if with_image:
        qs = qs.with_image()
    if exclude is not None:
        qs = qs.exclude(pk=exclude.pk)
    ids = list(qs.values_list("id", flat=True))
    if not ids:
        return []
    picked = random.sample(ids, min(count, len(ids)))
    by_id = Post.objects.select_related("section").in_bulk(picked)
    return [by_id[i] for i in picked if i in by_id]


def downloadable_posts(count: int = 6):
    return list(
        Post.objects.visible().downloadable()
        .select_related("section")
        .order_by("-created_at", "-id")[:count]
    )


# ---------- notifications ----------

def notify_superadmins(post: Post) -> None:
    recipients = list(getattr(settings, "SUPERADMIN_NOTIFY_EMAILS", []) or [])
    if not recipients:
        return
    site_url = getattr(settings, "SITE_URL", "").rstrip("/")
    try:
        send_mail(
            subject=f"New post published: {post.title}",
            message=f'"{post.title}" was published.\n\n{site_url}{post.path}',
            from_email=None,
            recipient_list=recipients,
            fail_silently=False,
        )
    except (SMTPException, OSError):
        logger.exception("Publish notification failed for post %s", post.pk)


# ---------- mutations ----------

def _coerce(field: str, value):
    if field == "price":
        try:
            return Decimal(str(value or "0"))
        except InvalidOperation:
            return Decimal("0")
    if field == "published_at" and isinstance(value, str):
        return parse_datetime(value) if value else None
    if field == "discount_percentage":
        return int(value or 0)
    return value


def apply_changes(post: Post, changes: dict) -> Post:
    for field, value in (changes or {}).items():
        if field not in EDITABLE_FIELDS:
            logger.debug("Ignoring non-editable field %s", field)
            continue
        setattr(post, field, _coerce(field, value))
    return post


def create_post(post: Post, actor=None) -> Post:
    if post.author_id is None and actor is not None and getattr(actor, "is_authenticated", False):
        post.author = actor
    post.full_clean(exclude=["slug"])
    post.save()
    if post.status == Post.STATUS_PUBLISHED:
        log_activity(actor, f"Published post: {post.title}", {"post_id": post.pk})
        notify_superadmins(post)
    return post


def update_post(post: Post, changes: dict, actor=None) -> Post:
    was_published = post.status == Post.STATUS_PUBLISHED
    apply_changes(post, changes)
    post.full_clean(exclude=["slug"])
    post.save()

    if post.status == Post.STATUS_PUBLISHED:
        if was_published:
            log_activity(actor, f"Updated published post: {post.title}", {"post_id": post.pk})
        else:
            log_activity(actor, f"Published post: {post.title}", {"post_id": post.pk})
            notify_superadmins(post)
    return post


def serialize_changes(changes: dict) -> dict:
    """Make a change set JSON-safe for storage in PostEdit.proposed_data."""
    out = {}
    for field, value in (changes or {}).items():
        if field not in EDITABLE_FIELDS:
            continue
        if isinstance(value, Decimal):
            value = str(value)
        elif hasattr(value, "isoformat"):
            value = value.isoformat()
        out[field] = value
    return out


def submit_edit(post: Post, editor, proposed_data: dict) -> PostEdit:
    edit = PostEdit.objects.create(
        post=post,
        editor=editor,
        proposed_data=serialize_changes(proposed_data),
    )
    log_activity(editor, f"Submitted edit for post: {post.title}", {"post_id": post.pk, "edit_id": edit.pk})
    return edit


@transaction.atomic
def approve_edit(edit: PostEdit, reviewer) -> Post:
    if edit.status != PostEdit.STATUS_PENDING:
        raise ValueError("Only pending edits can be approved.")
    data = dict(edit.proposed_data or {})
    data["status"] = Post.STATUS_PUBLISHED
    post = update_post(edit.post, data, actor=reviewer)

    edit.status = PostEdit.STATUS_APPROVED
    edit.reviewer = reviewer
    edit.reviewed_at = timezone.now()
    edit.save(update_fields=["status", "reviewer", "reviewed_at"])
    log_activity(reviewer, f"Approved edit for post: {post.title}", {"edit_id": edit.pk})
    return post


def reject_edit(edit: PostEdit, reviewer) -> PostEdit:
    if edit.status != PostEdit.STATUS_PENDING:
        raise ValueError("Only pending edits can be rejected.")
    edit.status = PostEdit.STATUS_REJECTED
    edit.reviewer = reviewer
    edit.reviewed_at = timezone.now()
    edit.save(update_fields=["status", "reviewer", "reviewed_at"])
    log_activity(reviewer, f"Rejected edit for post: {edit.post.title}", {"edit_id": edit.pk})
    return edit


@transaction.atomic
def delete_post(post: Post, actor=None) -> None:
    was_published = post.status == Post.STATUS_PUBLISHED
    title, pk = post.title, post.pk
    post.edits.filter(status=PostEdit.STATUS_PENDING).delete()
    post.delete()
    if was_published:
        log_activity(actor, f"Deleted published post: {title}", {"post_id": pk})


def increment_stat(post: Post, kind: str) -> None:
    if kind not in STAT_KINDS:
        logger.warning("Unknown stat kind %r for post %s", kind, post.pk)
        return
    stat, _ = PostStat.objects.get_or_create(post=post)
    PostStat.objects.filter(pk=stat.pk).update(**{kind: F(kind) + 1, "updated_at": timezone.now()})


# ---------- comments ----------

def comment_threads(post: Post) -> list:
    """Approved top-level comments, each with its approved replies."""
    approved = list(
        Comment.objects.filter(post=post, status=Comment.STATUS_APPROVED)
        .order_by("created_at", "id")
    )
    replies = {}
    for c in approved:
        if c.parent_id:
            replies.setdefault(c.parent_id, []).append(c)
    return [
        {"comment": c, "replies": replies.get(c.id, [])}
        for c in approved
        if c.parent_id is None
    ]


def add_comment(post: Post, *, author_name: str, content: str, user=None, parent=None) -> Comment:
    if not post.comments_enabled:
        raise ValueError("Comments are disabled for this post.")
    author_name = (author_name or "").strip()
    content = (content or "").strip()
    if not author_name or not content:
        raise ValueError("Name and comment are required.")
    if parent is not None:
        if parent.post_id != post.pk:
            raise ValueError("Reply target belongs to another post.")
        # one level of replies only
        if parent.parent_id:
            parent = parent.parent
    return Comment.objects.create(
        post=post,
        user=user if getattr(user, "is_authenticated", False) else None,
        parent=parent,
        author_name=author_name[:120],
        content=content,
    )


def moderate_comment(comment: Comment, action: str, actor=None) -> None:
    details = {"comment_id": comment.pk, "post_id": comment.post_id}
    if action == "approve":
        comment.status = Comment.STATUS_APPROVED
        comment.save(update_fields=["status"])
    elif action == "reject":
        comment.status = Comment.STATUS_REJECTED
        comment.save(update_fields=["status"])
    elif action == "delete":
        comment.delete()
    else:
        raise ValueError(f"Unknown moderation action: {action}")
    log_activity(actor, f"Comment moderation: {action}", details)
