from .models import SiteContent


def get_site_content(key: str, default: str = "") -> str:
    row = SiteContent.objects.filter(key=key).only("value").first()
    return row.value if row is not None else default


def all_site_content() -> dict:
    return dict(SiteContent.objects.values_list("key", "value"))


def set_site_content(key: str, value) -> SiteContent:
    row, _ = SiteContent.objects.update_or_create(key=key, defaults={"value": "" if value is None else str(value)})
    return row


def get_bool(key: str, default: bool = False) -> bool:
    raw = get_site_content(key, "")
    if raw == "":
        return default
    return raw.strip().lower() == "true"


def set_bool(key: str, value: bool) -> SiteContent:
    return set_site_content(key, "true" if value else "false")
