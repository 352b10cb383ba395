# cms/sanitize.py
from __future__ import annotations

from urllib.parse import urlparse

from bleach.html5lib_shim import Filter
from bleach.sanitizer import Cleaner
from bleach.css_sanitizer import CSSSanitizer


# Tags the post editor can produce (tables, media, headings, basic formatting).
POST_ALLOWED_TAGS = [
    "iframe",
    "table", "thead", "tbody", "tr", "td", "th", "colgroup", "col",
    "div", "span",
    "h1", "h2", "h3", "h4",
    "p", "br", "hr",
    "b", "i", "u", "s", "strong", "em",
    "ul", "ol", "li",
    "a", "img",
    "blockquote", "pre", "code",
    "video", "source",
]

POST_ALLOWED_ATTRS = {
    # resizable images / aligned embeds / invisible tables
    "*": ["style", "class", "title", "data-align", "data-youtube-video", "data-invisible"],
    "a": ["href", "target", "rel", "name"],
    "img": ["src", "alt", "width", "height", "loading"],
    "table": ["border", "cellpadding", "cellspacing", "width", "height"],
    "td": ["colspan", "rowspan", "width", "align", "valign"],
    "th": ["colspan", "rowspan", "width", "align", "valign"],
    "video": ["src", "controls", "width", "height", "poster", "preload"],
    "source": ["src", "type"],
}

POST_ALLOWED_PROTOCOLS = ["http", "https", "mailto", "tel"]

# Keep styles limited: enough for cell colours, borders, image sizing and alignment
POST_ALLOWED_CSS_PROPS = [
    "color", "background-color",
    "font-size", "font-weight", "font-style", "text-decoration",
    "text-align", "line-height", "vertical-align",
    "border", "border-width", "border-style", "border-color", "border-collapse",
    "padding", "padding-left", "padding-right", "padding-top", "padding-bottom",
    "margin", "margin-left", "margin-right", "margin-top", "margin-bottom",
    "width", "height", "max-width", "min-width", "max-height", "min-height",
    "display", "justify-content",
    "list-style-type",
    "border-radius",
    "white-space",
]

post_css_sanitizer = CSSSanitizer(allowed_css_properties=POST_ALLOWED_CSS_PROPS)

# iframes are kept only for these hosts
ALLOWED_IFRAME_HOSTS = {"www.youtube.com", "youtube.com", "www.youtube-nocookie.com"}

IFRAME_ATTRS = ["frameborder", "allow", "allowfullscreen", "width", "height", "scrolling"]


def is_allowed_iframe_src(src: str) -> bool:
    src = (src or "").strip()
    if not src:
        return False
    parsed = urlparse(src)
    if parsed.scheme not in ("http", "https"):
        return False
    return (parsed.hostname or "").lower() in ALLOWED_IFRAME_HOSTS


def _iframe_attr(tag, name, value) -> bool:
    if name == "src":
        return is_allowed_iframe_src(value)
    return name in IFRAME_ATTRS or name in POST_ALLOWED_ATTRS["*"]


POST_ALLOWED_ATTRS["iframe"] = _iframe_attr


class DropBareIframes(Filter):
    """Removes iframes whose src did not survive attribute filtering, content included."""

    def __iter__(self):
        skipping = False
        for token in super().__iter__():
            is_iframe = token.get("name") == "iframe"
            if skipping:
                if is_iframe and token["type"] == "EndTag":
                    skipping = False
                continue
            if is_iframe and token["type"] in ("StartTag", "EmptyTag") and (None, "src") not in token["data"]:
                skipping = token["type"] == "StartTag"
                continue
            yield token


def sanitize_post_html(html: str) -> str:
    html = (html or "").strip()
    if not html:
        return ""

    # Cleaner holds parser state, so one per call
    cleaner = Cleaner(
        tags=POST_ALLOWED_TAGS,
        attributes=POST_ALLOWED_ATTRS,
        protocols=POST_ALLOWED_PROTOCOLS,
        strip=True,
        css_sanitizer=post_css_sanitizer,
        filters=[DropBareIframes],
    )
    return cleaner.clean(html)
