from django import forms


class CheckoutForm(forms.Form):
    name = forms.CharField(max_length=160)
    email = forms.EmailField()


class DonationForm(forms.Form):
    amount = forms.DecimalField(max_digits=10, decimal_places=2, required=False, min_value=0)
    custom_amount = forms.DecimalField(max_digits=10, decimal_places=2, required=False, min_value=0)
    name = forms.CharField(max_length=160, required=False)
    email = forms.EmailField(required=False)

    def __init__(self, *args, options=(), **kwargs):
        super().__init__(*args, **kwargs)
        self.options = list(options)

    def clean(self):
        cleaned = super().clean()
        custom = cleaned.get("custom_amount")
        chosen = cleaned.get("amount")
        if custom:
            value = custom
        elif chosen and chosen in self.options:
            value = chosen
        else:
            raise forms.ValidationError("Choose one of the amounts or enter your own.")
        if value <= 0:
            raise forms.ValidationError("The amount must be greater than zero.")
        cleaned["final_amount"] = value
        return cleaned


class PaymentConfigForm(forms.Form):
    enable_razorpay = forms.BooleanField(required=False, label="Enable Razorpay")
    donation_page_title = forms.CharField(max_length=200, required=False)
    donation_page_description = forms.CharField(widget=forms.Textarea(attrs={"rows": 3}), required=False)
    donation_options = forms.CharField(max_length=200, required=False, help_text="Comma separated, e.g. 5,10,20")
    donation_currency = forms.CharField(max_length=8, required=False)
    donation_thank_you_title = forms.CharField(max_length=200, required=False)
    donation_thank_you_message = forms.CharField(widget=forms.Textarea(attrs={"rows": 3}), required=False)
