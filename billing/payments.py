# billing/payments.py
from __future__ import annotations

import csv
import logging
from datetime import datetime, timedelta
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from io import BytesIO, StringIO

from django.db import transaction
from django.db.models import Sum
from django.utils import timezone
from openpyxl import Workbook
from reportlab.pdfgen import canvas

from .gateway import create_order, verify_payment_signature
from .models import Payment

logger = logging.getLogger(__name__)

EXPORT_HEADERS = [
    "id", "kind", "status", "provider", "post", "payer_name", "payer_email",
    "amount", "currency", "provider_order_id", "provider_payment_id", "created_at",
]


class CheckoutError(Exception):
    """User-facing problem with checkout input."""


def to_cents(amount) -> int:
    try:
        value = Decimal(str(amount))
    except InvalidOperation as e:
        raise CheckoutError("Invalid amount.") from e
    return int((value * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _require_payer(name: str, email: str):
    name = (name or "").strip()
    email = (email or "").strip()
    if not name or not email:
        raise CheckoutError("Name and email are required.")
    return name, email


def start_premium_checkout(post, *, name: str, email: str) -> tuple:
    """Create a gateway order for a premium post. Returns (payment, order)."""
    name, email = _require_payer(name, email)
    if not post.is_premium:
        raise CheckoutError("This post is not for sale.")
    amount_cents = post.final_price_cents
    if amount_cents <= 0:
        raise CheckoutError("This post has no price set.")

    receipt = f"post_{post.pk}_{int(timezone.now().timestamp())}"
    order = create_order(
        amount_cents=amount_cents,
        currency=post.currency,
        receipt=receipt,
        notes={"kind": Payment.KIND_PREMIUM, "post_id": post.pk, "email": email},
    )
    payment = Payment.objects.create(
        kind=Payment.KIND_PREMIUM,
        post=post,
        payer_name=name,
        payer_email=email,
        currency=post.currency.upper(),
        amount_cents=amount_cents,
        provider_order_id=order["id"],
    )
    return payment, order


def start_donation(*, amount, currency: str, name: str = "", email: str = "") -> tuple:
    amount_cents = to_cents(amount)
    if amount_cents <= 0:
        raise CheckoutError("Choose an amount greater than zero.")

    receipt = f"donation_{int(timezone.now().timestamp())}"
    order = create_order(
        amount_cents=amount_cents,
        currency=currency,
        receipt=receipt,
        notes={"kind": Payment.KIND_DONATION, "email": email or ""},
    )
    payment = Payment.objects.create(
        kind=Payment.KIND_DONATION,
        payer_name=(name or "").strip(),
        payer_email=(email or "").strip(),
        currency=currency.upper(),
        amount_cents=amount_cents,
        provider_order_id=order["id"],
    )
    return payment, order


@transaction.atomic
def confirm_payment(order_id: str, payment_id: str, signature: str):
    """
    Verify the checkout callback. Returns the Payment (status updated) or None
    when no payment matches the order.
    """
    payment = Payment.objects.select_for_update().filter(provider_order_id=order_id).first()
    if payment is None:
        return None

    if not verify_payment_signature(order_id, payment_id, signature):
        if payment.status != Payment.STATUS_SUCCEEDED:
            payment.status = Payment.STATUS_FAILED
            payment.provider_payment_id = payment_id
            payment.provider_signature = signature
            payment.save(update_fields=["status", "provider_payment_id", "provider_signature", "updated_at"])
        logger.warning("Signature mismatch for order %s", order_id)
        return payment

    # Idempotent success
    if payment.status != Payment.STATUS_SUCCEEDED:
        payment.status = Payment.STATUS_SUCCEEDED
        payment.provider_payment_id = payment_id
        payment.provider_signature = signature
        payment.save(update_fields=["status", "provider_payment_id", "provider_signature", "updated_at"])
        logger.info("Payment %s succeeded (order %s)", payment.pk, order_id)
    return payment


def handle_webhook_event(payload: dict):
    """Apply a verified webhook payload. Returns the touched Payment or None."""
    event = payload.get("event", "")
    if event not in ("payment.captured", "payment.failed"):
        return None

    entity = (((payload.get("payload") or {}).get("payment") or {}).get("entity") or {})
    order_id = entity.get("order_id", "")
    payment_id = entity.get("id", "")
    if not order_id:
        return None

    with transaction.atomic():
        payment = Payment.objects.select_for_update().filter(provider_order_id=order_id).first()
        if payment is None:
            logger.info("Webhook %s for unknown order %s", event, order_id)
            return None

        if event == "payment.captured":
            if payment.status != Payment.STATUS_SUCCEEDED:
                payment.status = Payment.STATUS_SUCCEEDED
                payment.provider_payment_id = payment_id
                payment.save(update_fields=["status", "provider_payment_id", "updated_at"])
        elif payment.status != Payment.STATUS_SUCCEEDED:
            payment.status = Payment.STATUS_FAILED
            payment.provider_payment_id = payment_id
            payment.save(update_fields=["status", "provider_payment_id", "updated_at"])
    return payment


# ---------- panel listing / exports ----------

def _parse_date(s: str):
    """'YYYY-MM-DD' -> aware datetime at start of day, or None."""
    if not s:
        return None
    try:
        d = datetime.strptime(s, "%Y-%m-%d").date()
    except ValueError:
        return None
    tz = timezone.get_current_timezone()
    return timezone.make_aware(datetime(d.year, d.month, d.day), tz)


def filter_payments(params) -> tuple:
    """Returns (queryset, normalized filters) for the given GET params."""
    qs = Payment.objects.select_related("post")
    filters = {
        "provider": (params.get("provider") or "").strip(),
        "status": (params.get("status") or "").strip(),
        "currency": (params.get("currency") or "").strip().upper(),
        "kind": (params.get("kind") or "").strip(),
        "start": (params.get("start") or "").strip(),
        "end": (params.get("end") or "").strip(),
    }
    if filters["provider"]:
        qs = qs.filter(provider=filters["provider"])
    if filters["status"]:
        qs = qs.filter(status=filters["status"])
    if filters["currency"]:
        qs = qs.filter(currency=filters["currency"])
    if filters["kind"]:
        qs = qs.filter(kind=filters["kind"])

    start_dt = _parse_date(filters["start"])
    end_dt = _parse_date(filters["end"])
    if start_dt:
        qs = qs.filter(created_at__gte=start_dt)
    if end_dt:
        # end date includes the whole day
        qs = qs.filter(created_at__lt=end_dt + timedelta(days=1))

    return qs.order_by("-created_at", "-id"), filters


def succeeded_totals(qs) -> dict:
    rows = (
        qs.filter(status=Payment.STATUS_SUCCEEDED)
        .values("currency")
        .annotate(total=Sum("amount_cents"))
        .order_by("currency")
    )
    return {r["currency"]: int(r["total"] or 0) for r in rows}


def _row(p: Payment) -> list:
    return [
        p.pk, p.kind, p.status, p.provider,
        p.post.title if p.post_id else "",
        p.payer_name, p.payer_email,
        f"{p.amount_cents / 100:.2f}", p.currency,
        p.provider_order_id, p.provider_payment_id,
        p.created_at.isoformat(),
    ]


def export_csv(qs) -> str:
    out = StringIO()
    w = csv.writer(out)
    w.writerow(EXPORT_HEADERS)
    for p in qs:
        w.writerow(_row(p))
    return out.getvalue()


def export_xlsx(qs) -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = "Payments"
    ws.append(EXPORT_HEADERS)
    for p in qs:
        ws.append(_row(p))
    bio = BytesIO()
    wb.save(bio)
    return bio.getvalue()


def receipt_pdf(p: Payment) -> bytes:
    buf = BytesIO()
    c = canvas.Canvas(buf)
    c.setFont("Helvetica-Bold", 14)
    c.drawString(50, 800, "Payment receipt")

    c.setFont("Helvetica", 11)
    lines = [
        f"Receipt: {p.receipt_number}",
        f"Date: {p.created_at.strftime('%Y-%m-%d %H:%M')}",
        f"Type: {p.get_kind_display()}",
        f"Status: {p.get_status_display()}",
        f"Amount: {p.amount_cents / 100:.2f} {p.currency}",
    ]
    if p.post_id:
        lines.append(f"Item: {p.post.title}")
    if p.payer_name or p.payer_email:
        lines.append(f"Payer: {p.payer_name} <{p.payer_email}>".strip())
    if p.provider_order_id:
        lines.append(f"Razorpay Order: {p.provider_order_id}")
    if p.provider_payment_id:
        lines.append(f"Razorpay Payment: {p.provider_payment_id}")

    y = 770
    for line in lines:
        c.drawString(50, y, line)
        y -= 20

    c.showPage()
    c.save()
    pdf = buf.getvalue()
    buf.close()
    return pdf
