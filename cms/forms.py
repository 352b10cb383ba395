from django import forms

from .models import Post, Section, Category, Subcategory, PostTemplate, Suggestion


class PostForm(forms.ModelForm):
    custom_fields_text = forms.CharField(
        label="Custom fields",
        required=False,
        widget=forms.Textarea(attrs={"rows": 3}),
        help_text="One per line: Label: value",
    )

    class Meta:
        model = Post
        fields = [
            "title", "slug", "excerpt", "content",
            "main_image_url", "image_description",
            "custom_author_name", "show_author", "show_date",
            "status", "published_at",
            "section", "category", "subcategory",
            "is_premium", "price", "currency", "is_discount_active", "discount_percentage",
            "download_url", "comments_enabled", "is_featured",
            "keywords", "meta_title", "meta_description",
        ]
        widgets = {
            "content": forms.Textarea(attrs={"rows": 18, "style": "font-family: ui-monospace;"}),
            "excerpt": forms.Textarea(attrs={"rows": 3}),
            "meta_description": forms.Textarea(attrs={"rows": 3}),
            "published_at": forms.DateTimeInput(attrs={"type": "datetime-local"}),
        }

    def __init__(self, *args, can_publish=True, **kwargs):
        super().__init__(*args, **kwargs)
        self.fields["slug"].required = False
        if not can_publish:
            # editors without publish rights can only save drafts or ask for review
            self.fields["status"].choices = [
                (Post.STATUS_DRAFT, "Draft"),
                (Post.STATUS_PENDING, "Pending approval"),
            ]
        if self.instance and self.instance.pk:
            self.fields["custom_fields_text"].initial = "\n".join(
                f"{row.get('label', '')}: {row.get('value', '')}"
                for row in (self.instance.custom_fields or [])
                if isinstance(row, dict)
            )

    def clean_custom_fields_text(self):
        rows = []
        for line in (self.cleaned_data.get("custom_fields_text") or "").splitlines():
            if not line.strip():
                continue
            label, _, value = line.partition(":")
            rows.append({"label": label.strip(), "value": value.strip()})
        return rows

    def save(self, commit=True):
        self.instance.custom_fields = self.cleaned_data.get("custom_fields_text") or []
        return super().save(commit=commit)

    def changes(self) -> dict:
        """Changed values keyed the way cms.posts.apply_changes expects."""
        data = {}
        for name in self.Meta.fields:
            value = self.cleaned_data.get(name)
            if name in ("section", "category", "subcategory"):
                data[f"{name}_id"] = value.pk if value is not None else None
            else:
                data[name] = value
        data["custom_fields"] = self.cleaned_data.get("custom_fields_text") or []
        if not data.get("slug"):
            data.pop("slug", None)
        return data


class SectionForm(forms.ModelForm):
    class Meta:
        model = Section
        fields = ["name", "slug", "plural_name", "description"]

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.fields["slug"].required = False


class CategoryForm(forms.ModelForm):
    class Meta:
        model = Category
        fields = ["section", "name", "slug", "gradient", "description"]

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.fields["slug"].required = False


class SubcategoryForm(forms.ModelForm):
    class Meta:
        model = Subcategory
        fields = ["category", "name", "slug", "description"]

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.fields["slug"].required = False


class PostTemplateForm(forms.ModelForm):
    class Meta:
        model = PostTemplate
        fields = ["name", "content"]
        widgets = {"content": forms.Textarea(attrs={"rows": 12})}


class SuggestionForm(forms.ModelForm):
    class Meta:
        model = Suggestion
        fields = ["email", "message"]
        widgets = {"message": forms.Textarea(attrs={"rows": 5})}

    def clean_message(self):
        message = (self.cleaned_data.get("message") or "").strip()
        if not message:
            raise forms.ValidationError("Please write a suggestion.")
        return message


class CommentForm(forms.Form):
    author_name = forms.CharField(max_length=120, label="Name")
    content = forms.CharField(widget=forms.Textarea(attrs={"rows": 4}), label="Comment")
    parent_id = forms.IntegerField(required=False, widget=forms.HiddenInput)


class CustomThemeForm(forms.Form):
    label = forms.CharField(max_length=120)
    name = forms.SlugField(max_length=80, required=False)

    def __init__(self, *args, color_vars=(), initial_colors=None, **kwargs):
        super().__init__(*args, **kwargs)
        self.color_vars = list(color_vars)
        initial_colors = initial_colors or {}
        for var in self.color_vars:
            self.fields[self.field_name(var)] = forms.CharField(
                label=var, required=False, initial=initial_colors.get(var, ""),
                widget=forms.TextInput(attrs={"type": "color"}),
            )

    @staticmethod
    def field_name(var: str) -> str:
        return "color_" + var.lstrip("-").replace("-", "_")

    def colors(self) -> dict:
        return {var: self.cleaned_data.get(self.field_name(var)) or "" for var in self.color_vars}
