from datetime import timedelta

from django.contrib.auth import get_user_model
from django.db.models import Count, F, Q, Sum, Value
from django.db.models.functions import Coalesce
from django.utils import timezone

from .models import Post, PostEdit, Suggestion

SORTS = {
    "visits-desc": ("-visits", "title"),
    "visits-asc": ("visits", "title"),
    "downloads-desc": ("-downloads", "title"),
    "downloads-asc": ("downloads", "title"),
    "title": ("title",),
}
DEFAULT_SORT = "visits-desc"
TOP_N = 5


def post_stats(*, search="", section=None, category=None, days=None, sort=DEFAULT_SORT):
    """Posts annotated with visits/downloads; posts without stats count as zero."""
    qs = (
        Post.objects.select_related("section", "category")
        .annotate(
            visits=Coalesce(F("stats__visits"), Value(0)),
            downloads=Coalesce(F("stats__downloads"), Value(0)),
        )
    )

    search = (search or "").strip()
    if search:
        qs = qs.filter(title__icontains=search)
    if section:
        qs = qs.filter(section=section)
    if category:
        qs = qs.filter(category=category)
    if days:
        qs = qs.filter(stats__updated_at__gte=timezone.now() - timedelta(days=int(days)))

    return qs.order_by(*SORTS.get(sort, SORTS[DEFAULT_SORT]))


def totals(qs) -> dict:
    agg = qs.aggregate(visits=Sum("visits"), downloads=Sum("downloads"), posts=Count("id"))
    return {
        "visits": int(agg["visits"] or 0),
        "downloads": int(agg["downloads"] or 0),
        "posts": int(agg["posts"] or 0),
    }


def top_posts(qs, limit=TOP_N):
    return list(qs.order_by("-visits", "title")[:limit])


def dashboard_counters() -> dict:
    by_status = Post.objects.aggregate(
        published=Count("id", filter=Q(status=Post.STATUS_PUBLISHED)),
        drafts=Count("id", filter=Q(status=Post.STATUS_DRAFT)),
        pending=Count("id", filter=Q(status=Post.STATUS_PENDING)),
        scheduled=Count("id", filter=Q(status=Post.STATUS_SCHEDULED)),
    )
    return {
        **by_status,
        "users": get_user_model().objects.count(),
        "suggestions": Suggestion.objects.count(),
        "pending_edits": PostEdit.objects.filter(status=PostEdit.STATUS_PENDING).count(),
    }
