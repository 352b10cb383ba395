import pytest
from django.http import Http404

from cms.models import Category, Post, Section, Subcategory
from cms.taxonomy import (
    TaxonomyInUse,
    delete_category,
    delete_section,
    delete_subcategory,
    ordered_sections,
    reorder_sections,
    resolve_taxonomy,
)

pytestmark = pytest.mark.django_db


def test_slugs_are_generated(section, category, subcategory):
    assert section.slug == "guides"
    assert category.slug == "python"
    assert subcategory.slug == "django"


def test_category_slug_unique_per_section_only(section):
    other = Section.objects.create(name="News")
    a = Category.objects.create(section=section, name="Tools")
    b = Category.objects.create(section=other, name="Tools")
    c = Category.objects.create(section=section, name="Tools")
    assert a.slug == b.slug == "tools"
    assert c.slug == "tools-2"


def test_resolve_full_path(section, category, subcategory):
    ctx = resolve_taxonomy("guides", "python", "django")
    assert ctx["subcategory"] == subcategory
    assert ctx["title"] == "Django"
    assert ctx["base_path"] == "/guides/python/django/"
    assert ctx["description"] == "Explore Guides about Django."


def test_resolve_uses_node_description_and_default_plural():
    Section.objects.create(name="Misc", description="Odds and ends.")
    ctx = resolve_taxonomy("misc")
    assert ctx["description"] == "Odds and ends."
    assert ctx["plural"] == "Posts"


@pytest.mark.parametrize("path", [
    ("nope",),
    ("guides", "nope"),
    ("guides", "python", "nope"),
])
def test_resolve_unknown_slug_is_404(subcategory, path):
    with pytest.raises(Http404):
        resolve_taxonomy(*path)


def test_category_from_another_section_is_404(section):
    other = Section.objects.create(name="News")
    Category.objects.create(section=other, name="World")
    with pytest.raises(Http404):
        resolve_taxonomy("guides", "world")


def test_reorder_sections(section):
    b = Section.objects.create(name="B", order=1)
    c = Section.objects.create(name="C", order=2)
    reorder_sections([c.pk, "999", section.pk, b.pk])
    assert list(ordered_sections()) == [c, section, b]


def test_delete_section_refused_while_used(section, category):
    with pytest.raises(TaxonomyInUse):
        delete_section(section)
    category.delete()
    delete_section(section)
    assert not Section.objects.exists()


def test_delete_category_requires_reassignment(category, subcategory, make_post):
    post = make_post("In python", category=category, subcategory=subcategory)
    with pytest.raises(TaxonomyInUse):
        delete_category(category)

    target = Category.objects.create(section=category.section, name="Go")
    delete_category(category, reassign_to=target)

    post.refresh_from_db()
    assert post.category == target
    assert post.subcategory is None
    assert not Subcategory.objects.exists()


def test_delete_category_refuses_other_section(category, make_post):
    make_post("In python", category=category)
    foreign = Category.objects.create(section=Section.objects.create(name="News"), name="World")
    with pytest.raises(TaxonomyInUse):
        delete_category(category, reassign_to=foreign)


def test_delete_empty_category(category):
    delete_category(category)
    assert not Category.objects.filter(pk=category.pk).exists()


def test_delete_subcategory_moves_posts(category, subcategory, make_post):
    post = make_post("p", category=category, subcategory=subcategory)
    target = Subcategory.objects.create(category=category, name="Flask")
    delete_subcategory(subcategory, reassign_to=target)
    post.refresh_from_db()
    assert post.subcategory == target
    assert Post.objects.count() == 1
