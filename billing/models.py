from django.db import models


class Payment(models.Model):
    """
    One checkout attempt (premium content purchase or donation).
    Amounts are stored in the smallest currency unit.
    """
    KIND_PREMIUM = "premium_content"
    KIND_DONATION = "donation"
    KIND_CHOICES = [
        (KIND_PREMIUM, "Premium content"),
        (KIND_DONATION, "Donation"),
    ]

    STATUS_CREATED = "created"
    STATUS_SUCCEEDED = "succeeded"
    STATUS_FAILED = "failed"
    STATUS_CHOICES = [
        (STATUS_CREATED, "Created"),
        (STATUS_SUCCEEDED, "Succeeded"),
        (STATUS_FAILED, "Failed"),
    ]

    PROVIDER_RAZORPAY = "razorpay"
    PROVIDER_CHOICES = [
        (PROVIDER_RAZORPAY, "Razorpay"),
    ]

    kind = models.CharField(max_length=20, choices=KIND_CHOICES)
    post = models.ForeignKey(
        "cms.Post", null=True, blank=True,
        on_delete=models.SET_NULL, related_name="payments",
    )

    payer_name = models.CharField(max_length=160, blank=True, default="")
    payer_email = models.EmailField(blank=True, default="")

    currency = models.CharField(max_length=8, default="USD")
    amount_cents = models.PositiveIntegerField(default=0)

    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_CREATED)
    provider = models.CharField(max_length=32, choices=PROVIDER_CHOICES, default=PROVIDER_RAZORPAY)

    provider_order_id = models.CharField(max_length=128, default="", blank=True, db_index=True)
    provider_payment_id = models.CharField(max_length=128, default="", blank=True)
    provider_signature = models.CharField(max_length=256, default="", blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at", "-id"]

    def __str__(self) -> str:
        return f"{self.kind} {self.status} {self.amount_cents/100:.2f} {self.currency}"

    @property
    def amount(self) -> float:
        return self.amount_cents / 100

    @property
    def receipt_number(self) -> str:
        return f"RCPT-{self.created_at:%Y%m%d}-{self.pk}"
