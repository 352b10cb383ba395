from django.contrib import admin

from .models import Payment


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ("id", "kind", "status", "amount_display", "currency", "payer_email", "created_at")
    list_filter = ("status", "kind", "provider", "currency")
    search_fields = ("payer_email", "payer_name", "provider_order_id", "provider_payment_id")
    readonly_fields = ("provider_order_id", "provider_payment_id", "provider_signature", "created_at", "updated_at")

    def amount_display(self, obj):
        return f"{obj.amount_cents / 100:.2f}"

    amount_display.short_description = "Amount"
