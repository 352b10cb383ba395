import hashlib
import hmac
import json
from datetime import datetime
from decimal import Decimal
from io import BytesIO
from unittest import mock

import pytest
from django.urls import reverse
from django.utils import timezone
from openpyxl import load_workbook

from billing.config import get_payment_config, parse_donation_options, save_payment_config
from billing.gateway import GatewayNotConfigured, verify_payment_signature, verify_webhook_signature
from billing.models import Payment
from billing.payments import (
    CheckoutError,
    confirm_payment,
    export_csv,
    export_xlsx,
    filter_payments,
    handle_webhook_event,
    receipt_pdf,
    start_donation,
    start_premium_checkout,
    succeeded_totals,
    to_cents,
)
from cms.views import PURCHASED_SESSION_KEY

pytestmark = pytest.mark.django_db


def _sig(secret, message):
    return hmac.new(secret.encode(), message.encode(), hashlib.sha256).hexdigest()


@pytest.fixture
def razorpay_client(razorpay_keys):
    with mock.patch("billing.gateway.razorpay.Client") as client_cls:
        client_cls.return_value.order.create.return_value = {"id": "order_123", "amount": 1000, "currency": "USD"}
        yield client_cls.return_value


@pytest.fixture
def payment(premium_post):
    return Payment.objects.create(
        kind=Payment.KIND_PREMIUM,
        post=premium_post,
        payer_name="Ann",
        payer_email="ann@example.com",
        currency="USD",
        amount_cents=1000,
        provider_order_id="order_123",
    )


# ---------- gateway ----------

def test_payment_signature(razorpay_keys):
    good = _sig("rzp_test_secret", "order_1|pay_1")
    assert verify_payment_signature("order_1", "pay_1", good)
    assert not verify_payment_signature("order_1", "pay_2", good)
    assert not verify_payment_signature("order_1", "pay_1", "")


def test_webhook_signature_requires_secret():
    with pytest.raises(GatewayNotConfigured):
        verify_webhook_signature(b"{}", "x")


def test_webhook_signature(razorpay_keys):
    body = '{"event": "payment.captured"}'
    assert verify_webhook_signature(body.encode(), _sig("whsec_test", body))
    assert not verify_webhook_signature(body.encode(), "nope")


def test_to_cents():
    assert to_cents("10") == 1000
    assert to_cents(Decimal("0.015")) == 2
    with pytest.raises(CheckoutError):
        to_cents("ten")


# ---------- checkout ----------

def test_premium_checkout_creates_order_and_payment(razorpay_client, premium_post):
    payment, order = start_premium_checkout(premium_post, name="Ann", email="ann@example.com")
    assert order["id"] == "order_123"
    assert payment.amount_cents == 1000
    assert payment.status == Payment.STATUS_CREATED
    sent = razorpay_client.order.create.call_args.args[0]
    assert sent["amount"] == 1000
    assert sent["currency"] == "USD"


def test_premium_checkout_uses_discounted_price(razorpay_client, make_post):
    post = make_post("Half", is_premium=True, price=Decimal("10.00"), is_discount_active=True, discount_percentage=50)
    payment, _ = start_premium_checkout(post, name="Ann", email="ann@example.com")
    assert payment.amount_cents == 500


def test_premium_checkout_requires_payer(razorpay_client, premium_post):
    with pytest.raises(CheckoutError):
        start_premium_checkout(premium_post, name="", email="ann@example.com")
    assert not Payment.objects.exists()


def test_checkout_without_keys_raises(premium_post):
    with pytest.raises(GatewayNotConfigured):
        start_premium_checkout(premium_post, name="Ann", email="ann@example.com")


def test_donation(razorpay_client):
    payment, _ = start_donation(amount=Decimal("25"), currency="usd", name="Bo")
    assert payment.kind == Payment.KIND_DONATION
    assert payment.currency == "USD"
    assert payment.amount_cents == 2500


def test_checkout_view_renders_payment_page(client, razorpay_client, premium_post):
    resp = client.post(reverse("checkout", args=[premium_post.slug]), {"name": "Ann", "email": "ann@example.com"})
    assert resp.status_code == 200
    assert b"order_123" in resp.content
    assert Payment.objects.filter(provider_order_id="order_123").exists()


def test_checkout_view_for_free_post_redirects(client, published_post):
    resp = client.get(reverse("checkout", args=[published_post.slug]))
    assert resp["Location"] == reverse("post_detail", args=[published_post.slug])


# ---------- confirmation ----------

def test_confirm_payment_success_is_idempotent(razorpay_keys, payment):
    sig = _sig("rzp_test_secret", "order_123|pay_9")
    assert confirm_payment("order_123", "pay_9", sig).status == Payment.STATUS_SUCCEEDED
    assert confirm_payment("order_123", "pay_9", sig).status == Payment.STATUS_SUCCEEDED
    payment.refresh_from_db()
    assert payment.provider_payment_id == "pay_9"


def test_confirm_payment_bad_signature_marks_failed(razorpay_keys, payment):
    assert confirm_payment("order_123", "pay_9", "forged").status == Payment.STATUS_FAILED


def test_bad_signature_never_downgrades_success(razorpay_keys, payment):
    confirm_payment("order_123", "pay_9", _sig("rzp_test_secret", "order_123|pay_9"))
    assert confirm_payment("order_123", "pay_9", "forged").status == Payment.STATUS_SUCCEEDED


def test_confirm_unknown_order(razorpay_keys):
    assert confirm_payment("order_x", "pay_x", "sig") is None


def test_verify_view_unlocks_download(client, razorpay_keys, payment, premium_post):
    resp = client.post(reverse("payment_verify"), {
        "razorpay_order_id": "order_123",
        "razorpay_payment_id": "pay_9",
        "razorpay_signature": _sig("rzp_test_secret", "order_123|pay_9"),
    })
    assert resp["Location"] == reverse("post_detail", args=[premium_post.slug])
    assert client.session[PURCHASED_SESSION_KEY] == [premium_post.pk]

    download = client.get(reverse("post_download", args=[premium_post.slug]))
    assert download["Location"] == premium_post.download_url


def test_verify_view_mismatch_goes_back_to_checkout(client, razorpay_keys, payment, premium_post):
    resp = client.post(reverse("payment_verify"), {
        "razorpay_order_id": "order_123",
        "razorpay_payment_id": "pay_9",
        "razorpay_signature": "forged",
    })
    assert resp["Location"] == reverse("checkout", args=[premium_post.slug])
    assert PURCHASED_SESSION_KEY not in client.session


# ---------- webhook ----------

def _event(name, order_id="order_123", payment_id="pay_w"):
    return {"event": name, "payload": {"payment": {"entity": {"id": payment_id, "order_id": order_id}}}}


def test_webhook_event_captured_and_failed(payment):
    handle_webhook_event(_event("payment.failed"))
    payment.refresh_from_db()
    assert payment.status == Payment.STATUS_FAILED

    handle_webhook_event(_event("payment.captured"))
    payment.refresh_from_db()
    assert payment.status == Payment.STATUS_SUCCEEDED

    handle_webhook_event(_event("payment.failed"))
    payment.refresh_from_db()
    assert payment.status == Payment.STATUS_SUCCEEDED


def test_webhook_ignores_other_events(payment):
    assert handle_webhook_event(_event("order.paid")) is None


def test_webhook_view(client, razorpay_keys, payment):
    body = json.dumps(_event("payment.captured"))
    url = reverse("razorpay_webhook")

    bad = client.post(url, body, content_type="application/json", HTTP_X_RAZORPAY_SIGNATURE="nope")
    assert bad.status_code == 400

    ok = client.post(url, body, content_type="application/json",
                     HTTP_X_RAZORPAY_SIGNATURE=_sig("whsec_test", body))
    assert ok.status_code == 200
    payment.refresh_from_db()
    assert payment.status == Payment.STATUS_SUCCEEDED

    assert client.get(url).status_code == 405


def test_webhook_view_rejects_signed_non_object_body(client, razorpay_keys):
    body = json.dumps(["payment.captured"])
    resp = client.post(reverse("razorpay_webhook"), body, content_type="application/json",
                       HTTP_X_RAZORPAY_SIGNATURE=_sig("whsec_test", body))
    assert resp.status_code == 400


def test_webhook_view_without_secret(client):
    resp = client.post(reverse("razorpay_webhook"), "{}", content_type="application/json")
    assert resp.status_code == 400


# ---------- panel listing / exports ----------

def _set_created(payment, y, m, d, hour=12):
    when = timezone.make_aware(datetime(y, m, d, hour))
    Payment.objects.filter(pk=payment.pk).update(created_at=when)


def test_filter_end_date_is_inclusive(payment):
    _set_created(payment, 2024, 3, 10, hour=23)
    qs, filters = filter_payments({"start": "2024-03-10", "end": "2024-03-10"})
    assert list(qs) == [payment]
    qs, _ = filter_payments({"end": "2024-03-09"})
    assert list(qs) == []
    qs, filters = filter_payments({"end": "garbage", "currency": "usd"})
    assert list(qs) == [payment]
    assert filters["currency"] == "USD"


def test_succeeded_totals_by_currency(payment):
    Payment.objects.create(kind=Payment.KIND_DONATION, currency="INR", amount_cents=500, status=Payment.STATUS_SUCCEEDED)
    Payment.objects.create(kind=Payment.KIND_DONATION, currency="INR", amount_cents=700, status=Payment.STATUS_SUCCEEDED)
    assert succeeded_totals(Payment.objects.all()) == {"INR": 1200}


def test_exports(payment):
    qs = Payment.objects.select_related("post")

    lines = export_csv(qs).strip().splitlines()
    assert lines[0].startswith("id,kind,status")
    assert "Premium pack" in lines[1]
    assert "10.00" in lines[1]

    ws = load_workbook(BytesIO(export_xlsx(qs))).active
    assert ws.title == "Payments"
    assert ws.cell(row=2, column=5).value == "Premium pack"

    assert receipt_pdf(payment).startswith(b"%PDF")


def test_export_views(superadmin_client, payment):
    csv_resp = superadmin_client.get(reverse("panel_payments_export", args=["csv"]))
    assert csv_resp["Content-Type"].startswith("text/csv")
    assert superadmin_client.get(reverse("panel_payments_export", args=["pdf"])).status_code == 400

    receipt = superadmin_client.get(reverse("panel_payment_receipt", args=[payment.pk]))
    assert receipt["Content-Type"] == "application/pdf"
    assert payment.receipt_number in receipt["Content-Disposition"]


def test_payments_panel_requires_permission(editor_client):
    resp = editor_client.get(reverse("panel_payments"))
    assert resp["Location"] == reverse("panel_home")


# ---------- config ----------

def test_parse_donation_options():
    assert parse_donation_options("5, 10,abc,-3,,2.5") == [Decimal("5"), Decimal("10"), Decimal("2.5")]


def test_payment_config_defaults_and_save():
    config = get_payment_config()
    assert config["enable_razorpay"] is True
    assert config["donation_amounts"] == [Decimal("5"), Decimal("10"), Decimal("20"), Decimal("50")]

    save_payment_config({"enable_razorpay": False, "donation_currency": " inr ", "donation_options": "1,2"})
    config = get_payment_config()
    assert config["enable_razorpay"] is False
    assert config["donation_currency"] == "INR"
    assert config["donation_amounts"] == [Decimal("1"), Decimal("2")]


def test_donate_view_rejects_unknown_preset(client, razorpay_client):
    resp = client.post(reverse("donate"), {"amount": "7"})
    assert resp.status_code == 200
    assert not Payment.objects.exists()

    resp = client.post(reverse("donate"), {"amount": "10"})
    assert resp.status_code == 200
    assert Payment.objects.get().amount_cents == 1000
