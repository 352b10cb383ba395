from .themes import active_theme, theme_css


def site_theme(request):
    theme = active_theme()
    return {
        "active_theme": theme,
        "theme_css": theme_css(theme),
    }
