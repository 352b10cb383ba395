# billing/urls.py
from django.urls import path
from . import views

urlpatterns = [
    path("checkout/verify/", views.verify_payment, name="payment_verify"),
    path("checkout/<slug:slug>/", views.checkout, name="checkout"),
    path("donate/", views.donate, name="donate"),
    path("donate/thanks/", views.donation_thanks, name="donation_thanks"),
    path("webhook/razorpay/", views.razorpay_webhook, name="razorpay_webhook"),
]
