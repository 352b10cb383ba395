from django.contrib.sitemaps import Sitemap
from django.urls import reverse

from .models import Post


class StaticViewSitemap(Sitemap):
    priority = 0.8
    changefreq = "weekly"

    def items(self):
        return ["home", "resources", "suggestions", "policies", "donate"]

    def location(self, item):
        return reverse(item)


class PostSitemap(Sitemap):
    changefreq = "weekly"
    priority = 0.6

    def items(self):
        return Post.objects.visible().order_by("-updated_at", "-id")

    def lastmod(self, obj):
        return obj.updated_at

    def location(self, obj):
        return obj.path


sitemaps = {
    "static": StaticViewSitemap,
    "posts": PostSitemap,
}
