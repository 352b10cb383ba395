from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("cms", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Payment",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("kind", models.CharField(choices=[("premium_content", "Premium content"), ("donation", "Donation")], max_length=20)),
                ("payer_name", models.CharField(blank=True, default="", max_length=160)),
                ("payer_email", models.EmailField(blank=True, default="", max_length=254)),
                ("currency", models.CharField(default="USD", max_length=8)),
                ("amount_cents", models.PositiveIntegerField(default=0)),
                ("status", models.CharField(choices=[("created", "Created"), ("succeeded", "Succeeded"), ("failed", "Failed")], default="created", max_length=16)),
                ("provider", models.CharField(choices=[("razorpay", "Razorpay")], default="razorpay", max_length=32)),
                ("provider_order_id", models.CharField(blank=True, db_index=True, default="", max_length=128)),
                ("provider_payment_id", models.CharField(blank=True, default="", max_length=128)),
                ("provider_signature", models.CharField(blank=True, default="", max_length=256)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("post", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="payments", to="cms.post")),
            ],
            options={"ordering": ["-created_at", "-id"]},
        ),
    ]
