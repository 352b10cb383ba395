# billing/views.py
from __future__ import annotations

import json
import logging

from django.conf import settings
from django.contrib import messages
from django.core.paginator import Paginator
from django.http import HttpResponse, HttpResponseBadRequest
from django.shortcuts import get_object_or_404, redirect, render
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods, require_POST
from razorpay.errors import BadRequestError, ServerError

from accounts.activity import log_activity
from accounts.permissions import permission_required
from cms.models import Post
from cms.views import PURCHASED_SESSION_KEY

from .config import get_payment_config, save_payment_config
from .forms import CheckoutForm, DonationForm, PaymentConfigForm
from .gateway import GatewayNotConfigured, razorpay_configured, verify_webhook_signature
from .models import Payment
from .payments import (
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
)

logger = logging.getLogger(__name__)

GATEWAY_ERRORS = (GatewayNotConfigured, BadRequestError, ServerError)


def _checkout_available() -> bool:
    return razorpay_configured() and get_payment_config()["enable_razorpay"]


def _razorpay_context(payment, order, *, description: str) -> dict:
    return {
        "payment": payment,
        "razorpay_key_id": settings.RAZORPAY_KEY_ID,
        "razorpay_order_id": order["id"],
        "amount_cents": payment.amount_cents,
        "currency": payment.currency,
        "description": description,
    }


@require_http_methods(["GET", "POST"])
def checkout(request, slug):
    post = get_object_or_404(Post.objects.visible(), slug=slug)
    if not post.is_premium:
        return redirect("post_detail", slug=post.slug)

    form = CheckoutForm(request.POST or None)

    if request.method == "POST":
        if not _checkout_available():
            messages.error(request, "Online payments are not available right now.")
            return redirect("checkout", slug=post.slug)

        if form.is_valid():
            try:
                payment, order = start_premium_checkout(
                    post, name=form.cleaned_data["name"], email=form.cleaned_data["email"],
                )
            except CheckoutError as exc:
                messages.error(request, str(exc))
            except GATEWAY_ERRORS:
                logger.exception("Order creation failed for post %s", post.pk)
                messages.error(request, "Could not start the payment. Please try again.")
            else:
                ctx = _razorpay_context(payment, order, description=post.title)
                ctx["post"] = post
                return render(request, "billing/pay.html", ctx)

    return render(request, "billing/checkout.html", {
        "post": post,
        "form": form,
        "checkout_available": _checkout_available(),
    })


@require_POST
def verify_payment(request):
    order_id = (request.POST.get("razorpay_order_id") or "").strip()
    payment_id = (request.POST.get("razorpay_payment_id") or "").strip()
    signature = (request.POST.get("razorpay_signature") or "").strip()

    if not (order_id and payment_id and signature):
        messages.error(request, "Payment verification failed.")
        return redirect("home")

    payment = confirm_payment(order_id, payment_id, signature)
    if payment is None:
        messages.error(request, "Payment record not found.")
        return redirect("home")

    if payment.status != Payment.STATUS_SUCCEEDED:
        messages.error(request, "Payment signature mismatch.")
        if payment.post_id:
            return redirect("checkout", slug=payment.post.slug)
        return redirect("donate")

    if payment.kind == Payment.KIND_DONATION:
        return redirect("donation_thanks")

    purchased = list(request.session.get(PURCHASED_SESSION_KEY) or [])
    if payment.post_id and payment.post_id not in purchased:
        purchased.append(payment.post_id)
        request.session[PURCHASED_SESSION_KEY] = purchased

    messages.success(request, "Payment successful. Your download is unlocked.")
    return redirect("post_detail", slug=payment.post.slug)


@require_http_methods(["GET", "POST"])
def donate(request):
    config = get_payment_config()
    form = DonationForm(request.POST or None, options=config["donation_amounts"])

    if request.method == "POST":
        if not _checkout_available():
            messages.error(request, "Online payments are not available right now.")
            return redirect("donate")

        if form.is_valid():
            try:
                payment, order = start_donation(
                    amount=form.cleaned_data["final_amount"],
                    currency=config["donation_currency"],
                    name=form.cleaned_data.get("name") or "",
                    email=form.cleaned_data.get("email") or "",
                )
            except CheckoutError as exc:
                messages.error(request, str(exc))
            except GATEWAY_ERRORS:
                logger.exception("Donation order creation failed")
                messages.error(request, "Could not start the payment. Please try again.")
            else:
                return render(
                    request, "billing/pay.html",
                    _razorpay_context(payment, order, description=config["donation_page_title"]),
                )

    return render(request, "billing/donate.html", {
        "config": config,
        "form": form,
        "checkout_available": _checkout_available(),
    })


def donation_thanks(request):
    return render(request, "billing/thanks.html", {"config": get_payment_config()})


@csrf_exempt
def razorpay_webhook(request):
    if request.method != "POST":
        return HttpResponse(status=405)

    body = request.body
    received = request.headers.get("X-Razorpay-Signature", "")

    try:
        valid = verify_webhook_signature(body, received)
    except GatewayNotConfigured:
        return HttpResponseBadRequest("Webhook secret not set")
    if not valid:
        return HttpResponse(status=400)

    try:
        payload = json.loads(body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError):
        return HttpResponseBadRequest("Invalid payload")
    if not isinstance(payload, dict):
        return HttpResponseBadRequest("Invalid payload")

    handle_webhook_event(payload)
    return HttpResponse(status=200)


# ---------------------------------------------------------------------------
# Control panel
# ---------------------------------------------------------------------------

@permission_required("payments")
def payments_list(request):
    qs, filters = filter_payments(request.GET)
    page_obj = Paginator(qs, 25).get_page(request.GET.get("page") or 1)
    return render(request, "billing/panel/payments.html", {
        "page_obj": page_obj,
        "filters": filters,
        "totals": succeeded_totals(qs),
        "status_choices": Payment.STATUS_CHOICES,
        "provider_choices": Payment.PROVIDER_CHOICES,
        "kind_choices": Payment.KIND_CHOICES,
        "query": request.GET.urlencode(),
    })


@permission_required("payments")
def payments_export(request, fmt):
    qs, _ = filter_payments(request.GET)
    if fmt == "csv":
        resp = HttpResponse(export_csv(qs), content_type="text/csv")
        resp["Content-Disposition"] = 'attachment; filename="payments.csv"'
        return resp
    if fmt == "xlsx":
        resp = HttpResponse(
            export_xlsx(qs),
            content_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        )
        resp["Content-Disposition"] = 'attachment; filename="payments.xlsx"'
        return resp
    return HttpResponseBadRequest("Unknown export format")


@permission_required("payments")
def payment_receipt(request, payment_id: int):
    p = Payment.objects.select_related("post").filter(pk=payment_id).first()
    if not p:
        messages.error(request, "Payment not found.")
        return redirect("panel_payments")

    resp = HttpResponse(receipt_pdf(p), content_type="application/pdf")
    resp["Content-Disposition"] = f'attachment; filename="{p.receipt_number}.pdf"'
    return resp


@permission_required("payments")
@require_http_methods(["GET", "POST"])
def payments_config(request):
    if request.method == "POST":
        form = PaymentConfigForm(request.POST)
        if form.is_valid():
            save_payment_config(form.cleaned_data)
            log_activity(request.user, "Updated payment settings")
            messages.success(request, "Payment settings saved.")
            return redirect("panel_payments_config")
    else:
        config = get_payment_config()
        form = PaymentConfigForm(initial={k: v for k, v in config.items() if k in PaymentConfigForm.base_fields})

    return render(request, "billing/panel/config.html", {
        "form": form,
        "razorpay_configured": razorpay_configured(),
    })
