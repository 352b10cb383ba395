from django.urls import path
from . import views

urlpatterns = [
    path("payments/", views.payments_list, name="panel_payments"),
    path("payments/export.<str:fmt>", views.payments_export, name="panel_payments_export"),
    path("payments/<int:payment_id>/receipt/", views.payment_receipt, name="panel_payment_receipt"),
    path("payments/settings/", views.payments_config, name="panel_payments_config"),
]
