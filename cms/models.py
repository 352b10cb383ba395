from decimal import Decimal, ROUND_HALF_UP

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Q
from django.utils import timezone
from django.utils.text import slugify

from .sanitize import sanitize_post_html


def unique_slug(qs, value: str, *, exclude_pk=None, fallback: str = "item", max_length: int = 220) -> str:
    base = slugify(value)[:max_length] or fallback
    slug = base
    i = 2
    if exclude_pk is not None:
        qs = qs.exclude(pk=exclude_pk)
    while qs.filter(slug=slug).exists():
        slug = f"{base}-{i}"
        i += 1
    return slug


class Section(models.Model):
    name = models.CharField(max_length=120)
    slug = models.SlugField(max_length=140, unique=True, blank=True)
    plural_name = models.CharField(max_length=120, blank=True, default="")
    description = models.TextField(blank=True, default="")
    order = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ["order", "id"]

    def __str__(self):
        return self.name

    def save(self, *args, **kwargs):
        if not self.slug:
            self.slug = unique_slug(Section.objects.all(), self.name, exclude_pk=self.pk, fallback="section")
        super().save(*args, **kwargs)


class Category(models.Model):
    section = models.ForeignKey(Section, on_delete=models.PROTECT, related_name="categories")
    name = models.CharField(max_length=120)
    slug = models.SlugField(max_length=140, blank=True)
    gradient = models.CharField(max_length=200, blank=True, default="")
    description = models.TextField(blank=True, default="")

    class Meta:
        ordering = ["name"]
        unique_together = [("section", "slug")]
        verbose_name_plural = "categories"

    def __str__(self):
        return self.name

    def save(self, *args, **kwargs):
        if not self.slug:
            self.slug = unique_slug(
                Category.objects.filter(section_id=self.section_id), self.name,
                exclude_pk=self.pk, fallback="category",
            )
        super().save(*args, **kwargs)


class Subcategory(models.Model):
    category = models.ForeignKey(Category, on_delete=models.CASCADE, related_name="subcategories")
    name = models.CharField(max_length=120)
    slug = models.SlugField(max_length=140, blank=True)
    description = models.TextField(blank=True, default="")

    class Meta:
        ordering = ["name"]
        unique_together = [("category", "slug")]
        verbose_name_plural = "subcategories"

    def __str__(self):
        return self.name

    def save(self, *args, **kwargs):
        if not self.slug:
            self.slug = unique_slug(
                Subcategory.objects.filter(category_id=self.category_id), self.name,
                exclude_pk=self.pk, fallback="subcategory",
            )
        super().save(*args, **kwargs)


class PostQuerySet(models.QuerySet):
    def visible(self, now=None):
        """Published, or scheduled with a publish date already reached."""
        now = now or timezone.now()
        return self.filter(
            Q(status=Post.STATUS_PUBLISHED)
            | Q(status=Post.STATUS_SCHEDULED, published_at__lte=now)
        )

    def with_image(self):
        return self.exclude(main_image_url__isnull=True).exclude(main_image_url="")

    def downloadable(self):
        return self.exclude(download_url="")


class Post(models.Model):
    STATUS_DRAFT = "draft"
    STATUS_PENDING = "pending_approval"
    STATUS_SCHEDULED = "scheduled"
    STATUS_PUBLISHED = "published"
    STATUS_CHOICES = [
        (STATUS_DRAFT, "Draft"),
        (STATUS_PENDING, "Pending approval"),
        (STATUS_SCHEDULED, "Scheduled"),
        (STATUS_PUBLISHED, "Published"),
    ]

    title = models.CharField(max_length=200)
    slug = models.SlugField(max_length=240, unique=True, blank=True)
    excerpt = models.TextField(blank=True, default="")
    content = models.TextField(blank=True, default="")

    main_image_url = models.CharField(max_length=500, blank=True, default="")
    image_description = models.CharField(max_length=300, blank=True, default="")

    author = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True, blank=True,
        on_delete=models.SET_NULL,
        related_name="posts",
    )
    custom_author_name = models.CharField(max_length=120, blank=True, default="")
    show_author = models.BooleanField(default=True)
    show_date = models.BooleanField(default=True)

    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_DRAFT)

    section = models.ForeignKey(Section, on_delete=models.PROTECT, related_name="posts")
    category = models.ForeignKey(Category, null=True, blank=True, on_delete=models.PROTECT, related_name="posts")
    subcategory = models.ForeignKey(Subcategory, null=True, blank=True, on_delete=models.PROTECT, related_name="posts")

    # Premium / download
    is_premium = models.BooleanField(default=False)
    price = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("0.00"))
    currency = models.CharField(max_length=8, default="USD")
    is_discount_active = models.BooleanField(default=False)
    discount_percentage = models.PositiveSmallIntegerField(default=0)
    download_url = models.CharField(max_length=500, blank=True, default="")

    comments_enabled = models.BooleanField(default=True)
    custom_fields = models.JSONField(default=list, blank=True)
    is_featured = models.BooleanField(default=False)

    # SEO
    keywords = models.CharField(max_length=300, blank=True, default="")
    meta_title = models.CharField(max_length=70, blank=True, default="")
    meta_description = models.CharField(max_length=170, blank=True, default="")

    published_at = models.DateTimeField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = PostQuerySet.as_manager()

    class Meta:
        ordering = ["-created_at", "-id"]

    def __str__(self):
        return self.title

    @property
    def author_display(self) -> str:
        if self.custom_author_name:
            return self.custom_author_name
        if self.author_id:
            return self.author.get_full_name() or self.author.email.split("@")[0]
        return ""

    @property
    def final_price(self) -> Decimal:
        price = Decimal(self.price or 0)
        if self.is_discount_active and self.discount_percentage:
            price = price * (Decimal(100) - Decimal(self.discount_percentage)) / Decimal(100)
        return price.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)

    @property
    def final_price_cents(self) -> int:
        return int(self.final_price * 100)

    def is_visible(self, now=None) -> bool:
        now = now or timezone.now()
        if self.status == self.STATUS_PUBLISHED:
            return True
        return self.status == self.STATUS_SCHEDULED and bool(self.published_at) and self.published_at <= now

    @property
    def path(self) -> str:
        return f"/post/{self.slug}/"

    def save(self, *args, **kwargs):
        # auto-slug
        if not self.slug:
            self.slug = unique_slug(Post.objects.all(), self.title, exclude_pk=self.pk, fallback="post")

        # sanitize BEFORE saving
        self.content = sanitize_post_html(self.content)

        # published timestamp
        if self.status == self.STATUS_PUBLISHED and not self.published_at:
            self.published_at = timezone.now()
        if self.status == self.STATUS_DRAFT:
            self.published_at = None

        super().save(*args, **kwargs)

    def clean(self):
        errors = {}

        if not (self.title or "").strip():
            errors["title"] = "Title is required."

        if self.category_id and self.category.section_id != self.section_id:
            errors["category"] = "Category does not belong to the selected section."
        if self.subcategory_id:
            if not self.category_id:
                errors["subcategory"] = "Choose a category before a subcategory."
            elif self.subcategory.category_id != self.category_id:
                errors["subcategory"] = "Subcategory does not belong to the selected category."

        if self.status == self.STATUS_SCHEDULED and not self.published_at:
            errors["published_at"] = "Scheduled posts need a publish date."

        if self.is_premium and (self.price is None or self.price <= 0):
            errors["price"] = "Premium posts need a price greater than zero."
        if self.discount_percentage is not None and self.discount_percentage > 100:
            errors["discount_percentage"] = "Discount must be between 0 and 100."

        if not isinstance(self.custom_fields, list):
            errors["custom_fields"] = "Custom fields must be a list."

        if errors:
            raise ValidationError(errors)


class PostEdit(models.Model):
    STATUS_PENDING = "pending"
    STATUS_APPROVED = "approved"
    STATUS_REJECTED = "rejected"
    STATUS_CHOICES = [
        (STATUS_PENDING, "Pending"),
        (STATUS_APPROVED, "Approved"),
        (STATUS_REJECTED, "Rejected"),
    ]

    post = models.ForeignKey(Post, on_delete=models.CASCADE, related_name="edits")
    editor = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True,
        on_delete=models.SET_NULL, related_name="post_edits",
    )
    proposed_data = models.JSONField(default=dict)
    status = models.CharField(max_length=12, choices=STATUS_CHOICES, default=STATUS_PENDING)

    reviewer = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True,
        on_delete=models.SET_NULL, related_name="reviewed_post_edits",
    )
    reviewed_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at", "-id"]

    def __str__(self):
        return f"Edit of {self.post_id} ({self.status})"


class PostTemplate(models.Model):
    name = models.CharField(max_length=120)
    content = models.TextField(blank=True, default="")
    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True,
        on_delete=models.SET_NULL, related_name="post_templates",
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self):
        return self.name

    def save(self, *args, **kwargs):
        self.content = sanitize_post_html(self.content)
        super().save(*args, **kwargs)


class PostStat(models.Model):
    post = models.OneToOneField(Post, on_delete=models.CASCADE, related_name="stats")
    visits = models.PositiveIntegerField(default=0)
    downloads = models.PositiveIntegerField(default=0)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.post_id}: {self.visits} visits / {self.downloads} downloads"


class Comment(models.Model):
    STATUS_PENDING = "pending"
    STATUS_APPROVED = "approved"
    STATUS_REJECTED = "rejected"
    STATUS_CHOICES = [
        (STATUS_PENDING, "Pending"),
        (STATUS_APPROVED, "Approved"),
        (STATUS_REJECTED, "Rejected"),
    ]

    post = models.ForeignKey(Post, on_delete=models.CASCADE, related_name="comments")
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True,
        on_delete=models.SET_NULL, related_name="comments",
    )
    parent = models.ForeignKey("self", null=True, blank=True, on_delete=models.CASCADE, related_name="replies")
    author_name = models.CharField(max_length=120)
    content = models.TextField()
    status = models.CharField(max_length=12, choices=STATUS_CHOICES, default=STATUS_PENDING)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["created_at", "id"]

    def __str__(self):
        return f"{self.author_name} on {self.post_id}"


class SiteContent(models.Model):
    key = models.CharField(max_length=120, unique=True)
    value = models.TextField(blank=True, default="")
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["key"]
        verbose_name_plural = "site content"

    def __str__(self):
        return self.key


class Suggestion(models.Model):
    email = models.EmailField(blank=True, default="")
    message = models.TextField()
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at", "-id"]

    def __str__(self):
        return self.message[:60]


class CustomTheme(models.Model):
    name = models.SlugField(max_length=80, unique=True)
    label = models.CharField(max_length=120)
    colors = models.JSONField(default=dict)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["label"]

    def __str__(self):
        return self.label

    def as_theme(self) -> dict:
        return {"name": self.name, "label": self.label, "is_predefined": False, "colors": dict(self.colors or {})}
