from decimal import Decimal, InvalidOperation

from cms.site_content import get_site_content, set_site_content

# site content keys holding payment settings; booleans are "true"/"false"
DEFAULTS = {
    "enable_razorpay": "true",
    "donation_page_title": "Support the project",
    "donation_page_description": "Your donation keeps the content free for everyone.",
    "donation_options": "5,10,20,50",
    "donation_currency": "USD",
    "donation_thank_you_title": "Thank you!",
    "donation_thank_you_message": "We received your support. It means a lot.",
}
BOOL_KEYS = {"enable_razorpay"}


def get_payment_config() -> dict:
    config = {}
    for key, default in DEFAULTS.items():
        value = get_site_content(key, default)
        if key in BOOL_KEYS:
            value = (value or "").strip().lower() == "true"
        config[key] = value
    config["donation_amounts"] = parse_donation_options(config["donation_options"])
    return config


def save_payment_config(values: dict) -> None:
    for key in DEFAULTS:
        if key not in values:
            continue
        value = values[key]
        if key in BOOL_KEYS:
            value = "true" if value else "false"
        elif key == "donation_currency":
            value = (value or "USD").strip().upper()
        set_site_content(key, value)


def parse_donation_options(raw: str) -> list:
    """'5, 10,abc,-3' -> [Decimal('5'), Decimal('10')]"""
    amounts = []
    for part in (raw or "").split(","):
        part = part.strip()
        if not part:
            continue
        try:
            value = Decimal(part)
        except InvalidOperation:
            continue
        if value > 0:
            amounts.append(value)
    return amounts
