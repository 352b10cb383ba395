# cms/themes.py
from __future__ import annotations

import logging
import re

from django.utils.text import slugify

from accounts.activity import log_activity

from .models import CustomTheme
from .site_content import get_site_content, set_site_content

logger = logging.getLogger(__name__)

ACTIVE_THEME_KEY = "active_theme"
DEFAULT_THEME = "cosmic-latte"

CSS_VAR_RE = re.compile(r"^--[a-z0-9-]+$")
HSL_RE = re.compile(r"^\s*(-?[\d.]+)\s+(-?[\d.]+)%\s+(-?[\d.]+)%\s*$")
HEX_RE = re.compile(r"^#(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")


def _palette(bg, fg, primary, primary_fg, secondary, accent, border, ring, link, link_hover, muted):
    return {
        "--background": bg,
        "--foreground": fg,
        "--primary": primary,
        "--primary-foreground": primary_fg,
        "--secondary": secondary,
        "--accent": accent,
        "--border": border,
        "--input": border,
        "--ring": ring,
        "--link": link,
        "--link-hover": link_hover,
        "--muted-foreground": muted,
    }


PREDEFINED_THEMES = [
    {
        "name": "default",
        "label": "Vortex Purple",
        "colors": _palette("265 60% 8%", "255 5% 95%", "240 100% 67%", "255 100% 98%", "280 50% 20%",
                           "310 100% 60%", "265 30% 25%", "240 100% 75%", "240 100% 75%", "240 100% 85%",
                           "215 20% 65%"),
    },
    {
        "name": "ocean-deep",
        "label": "Ocean Deep",
        "colors": _palette("210 50% 10%", "210 30% 90%", "185 100% 50%", "210 50% 10%", "200 40% 25%",
                           "220 100% 65%", "210 30% 20%", "185 100% 60%", "185 100% 60%", "185 100% 70%",
                           "210 30% 70%"),
    },
    {
        "name": "forest-whisper",
        "label": "Forest Whisper",
        "colors": _palette("120 20% 8%", "100 10% 92%", "140 80% 45%", "120 20% 8%", "130 30% 25%",
                           "80 90% 55%", "120 15% 20%", "140 80% 55%", "140 80% 55%", "140 80% 65%",
                           "100 10% 72%"),
    },
    {
        "name": "monochrome-matrix",
        "label": "Monochrome Matrix",
        "colors": _palette("0 0% 8%", "0 0% 95%", "0 0% 100%", "0 0% 8%", "0 0% 25%",
                           "0 0% 60%", "0 0% 20%", "0 0% 80%", "0 0% 85%", "0 0% 95%",
                           "0 0% 65%"),
    },
    {
        "name": "cosmic-latte",
        "label": "Cosmic Latte (Light)",
        "colors": _palette("35 50% 95%", "30 20% 15%", "25 80% 55%", "35 50% 95%", "35 30% 88%",
                           "205 50% 50%", "35 20% 80%", "25 80% 65%", "205 50% 55%", "205 50% 65%",
                           "30 20% 45%"),
    },
    {
        "name": "midnight-cyber",
        "label": "Midnight Cyber (Dark)",
        "colors": _palette("230 40% 5%", "210 20% 88%", "180 100% 50%", "230 40% 5%", "230 30% 15%",
                           "330 100% 55%", "230 20% 20%", "180 100% 60%", "180 100% 60%", "180 100% 70%",
                           "210 20% 68%"),
    },
]

COLOR_VARS = list(PREDEFINED_THEMES[0]["colors"].keys())


def predefined_themes() -> list:
    return [dict(t, is_predefined=True, colors=dict(t["colors"])) for t in PREDEFINED_THEMES]


def all_themes() -> list:
    """Predefined themes then custom ones; a custom theme reusing a predefined name replaces it."""
    custom = {t.name: t.as_theme() for t in CustomTheme.objects.all()}
    themes = []
    for theme in predefined_themes():
        themes.append(custom.pop(theme["name"], theme))
    themes.extend(custom.values())
    return themes


def get_theme(name: str):
    for theme in all_themes():
        if theme["name"] == name:
            return theme
    return None


def active_theme() -> dict:
    name = get_site_content(ACTIVE_THEME_KEY, DEFAULT_THEME) or DEFAULT_THEME
    theme = get_theme(name) or get_theme(DEFAULT_THEME)
    if theme is None:
        logger.warning("Active theme %r missing, using first predefined theme", name)
        theme = predefined_themes()[0]
    return theme


def set_active_theme(name: str, actor=None) -> dict:
    theme = get_theme(name)
    if theme is None:
        raise ValueError(f"Unknown theme: {name}")
    set_site_content(ACTIVE_THEME_KEY, name)
    log_activity(actor, f"Activated theme: {theme['label']}", {"theme": name})
    return theme


def clean_colors(colors: dict) -> dict:
    out = {}
    for var, value in (colors or {}).items():
        value = (value or "").strip()
        if not CSS_VAR_RE.match(var or ""):
            continue
        if HEX_RE.match(value):
            value = hex_to_hsl(value)
        if HSL_RE.match(value):
            out[var] = value
    return out


def save_custom_theme(*, label: str, colors: dict, name: str = "", actor=None) -> CustomTheme:
    label = (label or "").strip()
    if not label:
        raise ValueError("Theme label is required.")
    name = slugify(name or label)
    if not name:
        raise ValueError("Theme name is required.")
    theme, created = CustomTheme.objects.update_or_create(
        name=name, defaults={"label": label, "colors": clean_colors(colors)},
    )
    log_activity(actor, f"{'Created' if created else 'Updated'} theme: {label}", {"theme": name})
    return theme


def delete_custom_theme(theme: CustomTheme, actor=None) -> None:
    name, label = theme.name, theme.label
    theme.delete()
    if get_site_content(ACTIVE_THEME_KEY, DEFAULT_THEME) == name and get_theme(name) is None:
        set_site_content(ACTIVE_THEME_KEY, DEFAULT_THEME)
    log_activity(actor, f"Deleted theme: {label}", {"theme": name})


def hsl_to_hex(hsl: str) -> str:
    """'H S% L%' -> '#rrggbb'. Malformed input gives '#000000'."""
    m = HSL_RE.match(hsl or "")
    if not m:
        return "#000000"
    h, s, l = (float(v) for v in m.groups())
    l_norm = l / 100
    a = (s * min(l_norm, 1 - l_norm)) / 100

    def channel(n):
        k = (n + h / 30) % 12
        color = l_norm - a * max(min(k - 3, 9 - k, 1), -1)
        return max(0, min(255, round(255 * color)))

    return "#{:02x}{:02x}{:02x}".format(channel(0), channel(8), channel(4))


def hex_to_hsl(value: str) -> str:
    """'#rrggbb' or '#rgb' -> 'H S% L%'. Malformed input gives '0 0% 0%'."""
    value = (value or "").strip()
    if not HEX_RE.match(value):
        return "0 0% 0%"
    digits = value[1:]
    if len(digits) == 3:
        digits = "".join(c * 2 for c in digits)
    r, g, b = (int(digits[i:i + 2], 16) / 255 for i in (0, 2, 4))

    cmax, cmin = max(r, g, b), min(r, g, b)
    delta = cmax - cmin
    if delta == 0:
        h = 0.0
    elif cmax == r:
        h = ((g - b) / delta) % 6
    elif cmax == g:
        h = (b - r) / delta + 2
    else:
        h = (r - g) / delta + 4
    h = round(h * 60) % 360

    l = (cmax + cmin) / 2
    s = 0 if delta == 0 else delta / (1 - abs(2 * l - 1))
    return f"{h} {round(s * 100)}% {round(l * 100)}%"


def theme_css(theme: dict) -> str:
    lines = [
        f"  {var}: {value};"
        for var, value in (theme.get("colors") or {}).items()
        if CSS_VAR_RE.match(var) and HSL_RE.match(value or "")
    ]
    return ":root {\n" + "\n".join(lines) + "\n}"
