import base64

import pytest
from django.core.files.uploadedfile import SimpleUploadedFile
from django.urls import reverse

from accounts.models import ActivityLog
from cms.models import Category, Comment, CustomTheme, Post, PostEdit, PostTemplate, Section, Suggestion
from cms.site_content import get_site_content
from cms.themes import ACTIVE_THEME_KEY

pytestmark = pytest.mark.django_db


def _post_data(section, **overrides):
    data = {
        "title": "From the panel",
        "slug": "",
        "excerpt": "",
        "content": "<p>Body</p>",
        "status": Post.STATUS_PUBLISHED,
        "section": section.pk,
        "currency": "USD",
        "price": "0",
        "discount_percentage": "0",
        "show_author": "on",
        "show_date": "on",
        "comments_enabled": "on",
        "custom_fields_text": "Level: beginner\nDuration: 1h",
    }
    data.update(overrides)
    return data


def test_dashboard_renders_counters(superadmin_client, published_post):
    resp = superadmin_client.get(reverse("panel_home"))
    assert resp.status_code == 200
    assert resp.context["counters"]["published"] == 1


def test_publisher_creates_published_post(superadmin_client, section):
    resp = superadmin_client.post(reverse("panel_post_create"), _post_data(section))
    post = Post.objects.get()
    assert resp["Location"] == reverse("panel_post_edit", args=[post.pk])
    assert post.status == Post.STATUS_PUBLISHED
    assert post.custom_fields == [
        {"label": "Level", "value": "beginner"},
        {"label": "Duration", "value": "1h"},
    ]


def test_editor_submission_goes_to_review(editor_client, editor, section):
    editor_client.post(reverse("panel_post_create"), _post_data(section, status=Post.STATUS_PENDING))
    post = Post.objects.get()
    assert post.status == Post.STATUS_PENDING
    assert post.author == editor


def test_editor_cannot_publish_directly(editor_client, section):
    resp = editor_client.post(reverse("panel_post_create"), _post_data(section))
    assert resp.status_code == 200
    assert not Post.objects.exists()


def test_editor_edit_of_published_post_creates_proposal(editor_client, editor, make_post, section):
    post = make_post("Mine", author=editor)
    editor_client.post(
        reverse("panel_post_edit", args=[post.pk]),
        _post_data(section, title="Mine, improved", status=Post.STATUS_PENDING),
    )
    post.refresh_from_db()
    assert post.title == "Mine"
    assert post.status == Post.STATUS_PUBLISHED
    edit = PostEdit.objects.get(post=post)
    assert edit.proposed_data["title"] == "Mine, improved"


def test_editor_cannot_edit_others_posts(editor_client, make_post):
    post = make_post("Not mine")
    resp = editor_client.get(reverse("panel_post_edit", args=[post.pk]))
    assert resp["Location"] == reverse("panel_home")


def test_pending_queue_publish_and_approve(superadmin_client, editor, make_post):
    waiting = make_post("Waiting", status=Post.STATUS_PENDING, author=editor)
    live = make_post("Live")
    edit = PostEdit.objects.create(post=live, editor=editor, proposed_data={"title": "Live v2"})

    resp = superadmin_client.get(reverse("panel_pending"))
    assert list(resp.context["pending_posts"]) == [waiting]
    assert list(resp.context["pending_edits"]) == [edit]

    superadmin_client.post(reverse("panel_pending"), {"action": "publish", "post_id": waiting.pk})
    superadmin_client.post(reverse("panel_pending"), {"action": "approve_edit", "edit_id": edit.pk})

    waiting.refresh_from_db()
    live.refresh_from_db()
    assert waiting.status == Post.STATUS_PUBLISHED
    assert live.title == "Live v2"


def test_pending_requires_publish_permission(editor_client):
    resp = editor_client.get(reverse("panel_pending"))
    assert resp["Location"] == reverse("panel_home")


def test_delete_post(superadmin_client, published_post):
    superadmin_client.post(reverse("panel_post_delete", args=[published_post.pk]))
    assert not Post.objects.exists()


def test_content_listing_includes_drafts(superadmin_client, make_post):
    make_post("Draft", status=Post.STATUS_DRAFT)
    make_post("Live")
    resp = superadmin_client.get(reverse("panel_content"))
    assert {p.title for p in resp.context["page_obj"]} == {"Draft", "Live"}


def test_comment_moderation(superadmin_client, published_post):
    comment = Comment.objects.create(post=published_post, author_name="Ann", content="Hi")
    superadmin_client.post(reverse("panel_comment_moderate", args=[comment.pk]), {"action": "approve"})
    comment.refresh_from_db()
    assert comment.status == Comment.STATUS_APPROVED


def test_post_templates_prefill_and_owner_delete(editor_client, editor, superadmin):
    editor_client.post(reverse("panel_post_templates"), {"name": "Review", "content": "<h2>Pros</h2>"})
    tpl = PostTemplate.objects.get()
    assert tpl.owner == editor

    resp = editor_client.get(reverse("panel_post_create"), {"template": tpl.pk})
    assert resp.context["form"].initial["content"] == "<h2>Pros</h2>"

    foreign = PostTemplate.objects.create(name="Other", owner=superadmin)
    editor_client.post(reverse("panel_post_templates"), {"action": "delete", "template_id": foreign.pk})
    assert PostTemplate.objects.filter(pk=foreign.pk).exists()


def test_taxonomy_save_and_delete(superadmin_client, section):
    superadmin_client.post(reverse("panel_taxonomy"), {
        "action": "save", "kind": "category", "section": section.pk, "name": "Rust",
    })
    rust = Category.objects.get(name="Rust")
    assert rust.slug == "rust"

    superadmin_client.post(reverse("panel_taxonomy"), {"action": "delete", "kind": "category", "id": rust.pk})
    assert not Category.objects.filter(pk=rust.pk).exists()


def test_taxonomy_reorder(superadmin_client, section):
    other = Section.objects.create(name="News", order=5)
    superadmin_client.post(reverse("panel_taxonomy"), {"action": "reorder", "order": [other.pk, section.pk]})
    other.refresh_from_db()
    section.refresh_from_db()
    assert (other.order, section.order) == (0, 1)


def test_analytics_page(superadmin_client, published_post):
    resp = superadmin_client.get(reverse("panel_analytics"), {"sort": "nonsense", "days": "x"})
    assert resp.status_code == 200
    assert resp.context["sort"] == "visits-desc"
    assert resp.context["totals"]["posts"] == 1


def test_theme_activate_and_save(superadmin_client):
    superadmin_client.post(reverse("panel_theme"), {"action": "activate", "name": "ocean-deep"})
    assert get_site_content(ACTIVE_THEME_KEY) == "ocean-deep"

    superadmin_client.post(reverse("panel_theme"), {
        "action": "save", "label": "Brand", "color_primary": "#ff0000",
    })
    assert CustomTheme.objects.get(name="brand").colors["--primary"] == "0 100% 50%"


def test_site_content_save(superadmin_client):
    superadmin_client.post(reverse("panel_site_content"), {"hero_title": "Welcome", "unknown": "x"})
    assert get_site_content("hero_title") == "Welcome"
    assert get_site_content("unknown") == ""


def test_assets_upload_and_data_url(superadmin_client):
    superadmin_client.post(reverse("panel_assets"), {
        "action": "upload",
        "files": [SimpleUploadedFile("a.png", b"\x89PNG....")],
    })
    resp = superadmin_client.get(reverse("panel_assets"))
    assert len(resp.context["assets"]) == 1

    payload = base64.b64encode(b"img").decode()
    resp = superadmin_client.post(reverse("panel_asset_data_url"), {"data_url": f"data:image/png;base64,{payload}"})
    assert resp.status_code == 200
    assert resp.json()["url"].endswith(".png")

    bad = superadmin_client.post(reverse("panel_asset_data_url"), {"data_url": "nope"})
    assert bad.status_code == 400


def test_health_page(superadmin_client):
    resp = superadmin_client.get(reverse("panel_health"))
    assert resp.status_code == 200
    assert resp.context["checks"]["database"]["ok"]


def test_suggestions_panel_delete(superadmin_client):
    s = Suggestion.objects.create(message="Hi")
    superadmin_client.post(reverse("panel_suggestions"), {"suggestion_id": s.pk})
    assert not Suggestion.objects.exists()
    assert ActivityLog.objects.filter(action="Deleted a suggestion").exists()
