from django import template

register = template.Library()


@register.filter
def cents_to_amount(value):
    try:
        v = int(value or 0)
    except (TypeError, ValueError):
        v = 0

    return f"{v/100:.2f}"
