import logging

from django.db import transaction
from django.http import Http404

from accounts.activity import log_activity

from .models import Section, Category, Subcategory, Post

logger = logging.getLogger(__name__)

DEFAULT_PLURAL = "Posts"


class TaxonomyInUse(Exception):
    """Raised when a taxonomy node can't be deleted because something still points at it."""


def ordered_sections():
    return Section.objects.all().order_by("order", "id")


@transaction.atomic
def reorder_sections(ids, actor=None):
    """Assign `order` by position in `ids`. Unknown ids are ignored."""
    sections = {s.id: s for s in Section.objects.filter(id__in=ids)}
    position = 0
    for raw in ids:
        section = sections.get(int(raw))
        if section is None:
            continue
        section.order = position
        section.save(update_fields=["order"])
        position += 1
    log_activity(actor, "Reordered sections", {"ids": [int(i) for i in ids]})


def delete_section(section, actor=None):
    if section.posts.exists():
        raise TaxonomyInUse(f'Section "{section.name}" still has posts.')
    if section.categories.exists():
        raise TaxonomyInUse(f'Section "{section.name}" still has categories.')
    name = section.name
    section.delete()
    log_activity(actor, f"Deleted section: {name}")


@transaction.atomic
def delete_category(category, reassign_to=None, actor=None):
    """
    Delete a category. Posts in it must move to `reassign_to`, a category of
    the same section; their subcategory is cleared.
    """
    posts = Post.objects.filter(category=category)
    if posts.exists():
        if reassign_to is None:
            raise TaxonomyInUse(f'Category "{category.name}" has posts; choose a category to move them to.')
        if reassign_to.pk == category.pk or reassign_to.section_id != category.section_id:
            raise TaxonomyInUse("Posts can only be moved to another category of the same section.")
        moved = posts.update(category=reassign_to, subcategory=None)
        logger.info("Moved %s posts from category %s to %s", moved, category.pk, reassign_to.pk)

    # subcategories cascade, but a post may still reference one of them
    Post.objects.filter(subcategory__category=category).update(subcategory=None)

    name = category.name
    category.delete()
    log_activity(actor, f"Deleted category: {name}", {"reassigned_to": getattr(reassign_to, "pk", None)})


@transaction.atomic
def delete_subcategory(subcategory, reassign_to=None, actor=None):
    posts = Post.objects.filter(subcategory=subcategory)
    if posts.exists():
        if reassign_to is None:
            raise TaxonomyInUse(f'Subcategory "{subcategory.name}" has posts; choose a subcategory to move them to.')
        if reassign_to.pk == subcategory.pk or reassign_to.category_id != subcategory.category_id:
            raise TaxonomyInUse("Posts can only be moved to another subcategory of the same category.")
        posts.update(subcategory=reassign_to)

    name = subcategory.name
    subcategory.delete()
    log_activity(actor, f"Deleted subcategory: {name}", {"reassigned_to": getattr(reassign_to, "pk", None)})


def resolve_taxonomy(section_slug, category_slug=None, subcategory_slug=None) -> dict:
    """
    Resolve a listing path to its taxonomy nodes and page texts.
    Every slug must exist under its parent, otherwise Http404.
    """
    section = Section.objects.filter(slug=section_slug).first()
    if section is None:
        raise Http404("Section not found")

    category = None
    subcategory = None
    if category_slug:
        category = Category.objects.filter(section=section, slug=category_slug).first()
        if category is None:
            raise Http404("Category not found")
    if subcategory_slug:
        if category is None:
            raise Http404("Subcategory without category")
        subcategory = Subcategory.objects.filter(category=category, slug=subcategory_slug).first()
        if subcategory is None:
            raise Http404("Subcategory not found")

    plural = section.plural_name or DEFAULT_PLURAL
    node = subcategory or category or section
    description = node.description or f"Explore {plural} about {node.name}."

    parts = [section.slug]
    if category:
        parts.append(category.slug)
    if subcategory:
        parts.append(subcategory.slug)

    return {
        "section": section,
        "category": category,
        "subcategory": subcategory,
        "title": node.name,
        "description": description,
        "base_path": "/" + "/".join(parts) + "/",
        "plural": plural,
    }
