from decimal import Decimal

import pytest
from django.core import mail
from django.core.exceptions import ValidationError

from accounts.models import ActivityLog
from cms.models import Category, Comment, Post, PostEdit, PostStat, Section
from cms.posts import (
    add_comment,
    approve_edit,
    comment_threads,
    create_post,
    delete_post,
    increment_stat,
    list_posts,
    moderate_comment,
    reject_edit,
    submit_edit,
    update_post,
)

pytestmark = pytest.mark.django_db


# ---------- model rules ----------

def test_slug_is_generated_and_made_unique(make_post):
    first = make_post("Hello World")
    second = make_post("Hello World")
    assert first.slug == "hello-world"
    assert second.slug == "hello-world-2"


def test_publishing_sets_date_and_draft_clears_it(make_post):
    post = make_post("Dated")
    assert post.published_at is not None

    post.status = Post.STATUS_DRAFT
    post.save()
    assert post.published_at is None


def test_content_is_sanitized_on_save(make_post):
    post = make_post("Unsafe", content="<p>ok</p><script>x()</script>")
    assert "<script" not in post.content


def test_scheduled_visibility(make_post, past, future):
    due = make_post("Due", status=Post.STATUS_SCHEDULED, published_at=past)
    later = make_post("Later", status=Post.STATUS_SCHEDULED, published_at=future)
    assert due.is_visible()
    assert not later.is_visible()
    assert set(Post.objects.visible()) == {due}


def test_final_price_applies_discount(make_post):
    post = make_post(
        "Sale", is_premium=True, price=Decimal("19.99"),
        is_discount_active=True, discount_percentage=15,
    )
    assert post.final_price == Decimal("16.99")
    assert post.final_price_cents == 1699


def test_final_price_ignores_inactive_discount(make_post):
    post = make_post("Full", is_premium=True, price=Decimal("10.00"), discount_percentage=50)
    assert post.final_price == Decimal("10.00")


def test_clean_rejects_foreign_category(section):
    elsewhere = Category.objects.create(section=Section.objects.create(name="News"), name="Elsewhere")
    post = Post(title="x", section=section, category=elsewhere)
    with pytest.raises(ValidationError) as exc:
        post.full_clean(exclude=["slug"])
    assert "category" in exc.value.message_dict


def test_clean_rejects_premium_without_price(section):
    post = Post(title="x", section=section, is_premium=True, price=Decimal("0"))
    with pytest.raises(ValidationError) as exc:
        post.full_clean(exclude=["slug"])
    assert "price" in exc.value.message_dict


def test_clean_rejects_discount_over_100(section):
    post = Post(title="x", section=section, discount_percentage=150)
    with pytest.raises(ValidationError) as exc:
        post.full_clean(exclude=["slug"])
    assert "discount_percentage" in exc.value.message_dict


def test_clean_requires_date_for_scheduled(section):
    post = Post(title="x", section=section, status=Post.STATUS_SCHEDULED)
    with pytest.raises(ValidationError) as exc:
        post.full_clean(exclude=["slug"])
    assert "published_at" in exc.value.message_dict


def test_author_display_prefers_custom_name(make_post, editor):
    assert make_post("a", author=editor).author_display == "editor"
    assert make_post("b", author=editor, custom_author_name="Guest").author_display == "Guest"


# ---------- listing ----------

def test_list_posts_only_visible_by_default(make_post):
    make_post("Live")
    make_post("Draft", status=Post.STATUS_DRAFT)
    make_post("Waiting", status=Post.STATUS_PENDING)
    titles = [p.title for p in list_posts()]
    assert titles == ["Live"]


def test_list_posts_include_flags(make_post):
    make_post("Live")
    make_post("Draft", status=Post.STATUS_DRAFT)
    make_post("Waiting", status=Post.STATUS_PENDING)
    page = list_posts(include_drafts=True, include_pending=True)
    assert {p.title for p in page} == {"Live", "Draft", "Waiting"}


def test_list_posts_filters_and_search(make_post, category):
    make_post("Django tips", category=category)
    make_post("Flask tips")
    assert [p.title for p in list_posts(category=category)] == ["Django tips"]
    assert {p.title for p in list_posts(search="tips")} == {"Django tips", "Flask tips"}
    assert [p.title for p in list_posts(search="flask")] == ["Flask tips"]


def test_list_posts_paginates(make_post):
    for i in range(12):
        make_post(f"Post {i}")
    page = list_posts(per_page=9, page=2)
    assert page.number == 2
    assert len(page.object_list) == 3
    assert page.paginator.count == 12


# ---------- create / update / review ----------

def test_create_published_post_notifies_superadmins(settings, section, editor):
    settings.SUPERADMIN_NOTIFY_EMAILS = ["boss@example.com"]
    post = create_post(Post(title="Big news", section=section, status=Post.STATUS_PUBLISHED), actor=editor)
    assert post.author == editor
    assert len(mail.outbox) == 1
    assert "Big news" in mail.outbox[0].subject
    assert ActivityLog.objects.filter(action="Published post: Big news").exists()


def test_create_draft_does_not_notify(settings, section):
    settings.SUPERADMIN_NOTIFY_EMAILS = ["boss@example.com"]
    create_post(Post(title="Quiet", section=section, status=Post.STATUS_DRAFT))
    assert mail.outbox == []


def test_update_post_rejects_invalid_changes(published_post):
    with pytest.raises(ValidationError):
        update_post(published_post, {"is_premium": True, "price": "0"})


def test_updating_published_post_logs_without_mail(settings, published_post, superadmin):
    settings.SUPERADMIN_NOTIFY_EMAILS = ["boss@example.com"]
    update_post(published_post, {"title": "Retitled"}, actor=superadmin)
    assert mail.outbox == []
    assert ActivityLog.objects.filter(action="Updated published post: Retitled").exists()


def test_publishing_a_draft_notifies(settings, make_post):
    settings.SUPERADMIN_NOTIFY_EMAILS = ["boss@example.com"]
    draft = make_post("Soon", status=Post.STATUS_DRAFT)
    update_post(draft, {"status": Post.STATUS_PUBLISHED})
    assert len(mail.outbox) == 1


def test_edit_review_flow(published_post, editor, superadmin):
    edit = submit_edit(published_post, editor, {"title": "Better title", "price": Decimal("0.00")})
    assert edit.proposed_data["price"] == "0.00"
    assert edit.status == PostEdit.STATUS_PENDING

    post = approve_edit(edit, superadmin)
    edit.refresh_from_db()
    assert post.title == "Better title"
    assert post.status == Post.STATUS_PUBLISHED
    assert edit.status == PostEdit.STATUS_APPROVED
    assert edit.reviewer == superadmin

    with pytest.raises(ValueError):
        approve_edit(edit, superadmin)


def test_reject_edit_leaves_post_untouched(published_post, editor, superadmin):
    edit = submit_edit(published_post, editor, {"title": "Nope"})
    reject_edit(edit, superadmin)
    published_post.refresh_from_db()
    assert published_post.title == "Published post"
    assert PostEdit.objects.get(pk=edit.pk).status == PostEdit.STATUS_REJECTED


def test_submit_edit_ignores_unknown_fields(published_post, editor):
    edit = submit_edit(published_post, editor, {"title": "t", "author_id": 99})
    assert edit.proposed_data == {"title": "t"}


def test_delete_post_removes_pending_edits(published_post, editor):
    submit_edit(published_post, editor, {"title": "t"})
    delete_post(published_post)
    assert not PostEdit.objects.exists()
    assert ActivityLog.objects.filter(action="Deleted published post: Published post").exists()


# ---------- stats ----------

def test_increment_stat_creates_and_counts(published_post):
    increment_stat(published_post, "visits")
    increment_stat(published_post, "visits")
    increment_stat(published_post, "downloads")
    stat = PostStat.objects.get(post=published_post)
    assert (stat.visits, stat.downloads) == (2, 1)


def test_increment_stat_ignores_unknown_kind(published_post):
    increment_stat(published_post, "likes")
    assert not PostStat.objects.exists()


# ---------- comments ----------

def test_comments_start_pending_and_thread_once_approved(published_post, superadmin):
    top = add_comment(published_post, author_name="Ann", content="Nice")
    reply = add_comment(published_post, author_name="Bob", content="Agreed", parent=top)
    nested = add_comment(published_post, author_name="Cy", content="Me too", parent=reply)
    assert top.status == Comment.STATUS_PENDING
    assert nested.parent == top
    assert comment_threads(published_post) == []

    for c in (top, reply, nested):
        moderate_comment(c, "approve", actor=superadmin)

    threads = comment_threads(published_post)
    assert len(threads) == 1
    assert threads[0]["comment"] == top
    assert threads[0]["replies"] == [reply, nested]


def test_comment_requires_name_and_content(published_post):
    with pytest.raises(ValueError):
        add_comment(published_post, author_name=" ", content="x")


def test_comment_refused_when_disabled(make_post):
    post = make_post("Closed", comments_enabled=False)
    with pytest.raises(ValueError):
        add_comment(post, author_name="Ann", content="Hi")


def test_moderate_comment_delete_and_unknown_action(published_post):
    comment = add_comment(published_post, author_name="Ann", content="Hi")
    with pytest.raises(ValueError):
        moderate_comment(comment, "shout")
    moderate_comment(comment, "delete")
    assert not Comment.objects.exists()
    assert ActivityLog.objects.filter(action="Comment moderation: delete").exists()
