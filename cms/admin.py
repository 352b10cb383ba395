from django.contrib import admin
from django import forms

from .models import (
    Section, Category, Subcategory, Post, PostEdit, PostTemplate,
    PostStat, Comment, SiteContent, Suggestion, CustomTheme,
)


class PostAdminForm(forms.ModelForm):
    class Meta:
        model = Post
        fields = "__all__"
        widgets = {
            "content": forms.Textarea(attrs={"rows": 18, "style": "font-family: ui-monospace;"}),
            "excerpt": forms.Textarea(attrs={"rows": 3}),
            "meta_description": forms.Textarea(attrs={"rows": 3}),
        }


@admin.register(Post)
class PostAdmin(admin.ModelAdmin):
    form = PostAdminForm

    list_display = ("title", "section", "status", "is_premium", "is_featured", "published_at", "updated_at")
    list_filter = ("status", "section", "is_premium", "is_featured")
    search_fields = ("title", "excerpt", "slug", "meta_title")
    prepopulated_fields = {"slug": ("title",)}
    readonly_fields = ("created_at", "updated_at")
    raw_id_fields = ("author",)

    fieldsets = (
        ("Common", {
            "fields": ("status", "title", "slug", "excerpt", "section", "category", "subcategory")
        }),
        ("Content (HTML)", {
            "fields": ("content", "main_image_url", "image_description", "custom_fields"),
        }),
        ("Author", {
            "fields": ("author", "custom_author_name", "show_author", "show_date"),
            "classes": ("collapse",),
        }),
        ("Premium / download", {
            "fields": ("is_premium", "price", "currency", "is_discount_active",
                       "discount_percentage", "download_url"),
            "classes": ("collapse",),
        }),
        ("SEO", {
            "fields": ("keywords", "meta_title", "meta_description"),
        }),
        ("Flags", {
            "fields": ("comments_enabled", "is_featured"),
        }),
        ("Timestamps", {
            "fields": ("published_at", "created_at", "updated_at"),
        }),
    )


@admin.register(Section)
class SectionAdmin(admin.ModelAdmin):
    list_display = ("name", "slug", "order")
    ordering = ("order",)


@admin.register(Category)
class CategoryAdmin(admin.ModelAdmin):
    list_display = ("name", "section", "slug")
    list_filter = ("section",)


@admin.register(Subcategory)
class SubcategoryAdmin(admin.ModelAdmin):
    list_display = ("name", "category", "slug")


@admin.register(PostEdit)
class PostEditAdmin(admin.ModelAdmin):
    list_display = ("post", "editor", "status", "created_at", "reviewed_at")
    list_filter = ("status",)


@admin.register(Comment)
class CommentAdmin(admin.ModelAdmin):
    list_display = ("author_name", "post", "status", "created_at")
    list_filter = ("status",)


admin.site.register(PostTemplate)
admin.site.register(PostStat)
admin.site.register(SiteContent)
admin.site.register(Suggestion)
admin.site.register(CustomTheme)
