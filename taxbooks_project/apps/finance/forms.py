"""
Finance Forms - UAE VAT 201 review and Account Ledger filters
"""
from django import forms
from django.core.exceptions import ValidationError

from .vat import FIELD_NAMES, VATReturnInput


EXPORT_FORMAT_CHOICES = [
    ('', 'On screen'),
    ('json', 'JSON'),
    ('csv', 'CSV'),
    ('pdf', 'PDF'),
    ('excel', 'Excel'),
]


class VAT201Form(forms.Form):
    """
    Manual review form for a VAT 201 return. Every box is optional; blank
    boxes count as zero.
    """
    adjustment_reason = forms.CharField(
        required=False,
        widget=forms.Textarea(attrs={'rows': 2, 'class': 'form-control'}),
    )

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        for field_name in FIELD_NAMES:
            self.fields[field_name] = forms.DecimalField(
                required=False,
                max_digits=15,
                decimal_places=2,
                widget=forms.NumberInput(attrs={'step': '0.01', 'class': 'form-control text-end'}),
            )

    def clean(self):
        cleaned_data = super().clean()
        vat_return = VATReturnInput.from_dict(
            {name: cleaned_data.get(name) for name in FIELD_NAMES}
        )
        adjustments = vat_return.total_sales_adjustment() + vat_return.total_input_adjustment()
        adjustment_reason = cleaned_data.get('adjustment_reason', '')

        # VAT adjustments require reason (FTA requirement)
        if adjustments != 0 and not adjustment_reason:
            raise ValidationError("Adjustment reason is mandatory for VAT adjustments.")

        return cleaned_data

    def cleaned_return(self, status='draft'):
        """VATReturnInput built from validated data."""
        return VATReturnInput.from_dict(
            {name: self.cleaned_data.get(name) for name in FIELD_NAMES},
            status=status,
        )


class LedgerFilterForm(forms.Form):
    start_date = forms.DateField(required=False)
    end_date = forms.DateField(required=False)
    search = forms.CharField(required=False, max_length=200)
    page = forms.IntegerField(required=False, min_value=1)
    page_size = forms.IntegerField(required=False, min_value=1, max_value=500)
    format = forms.ChoiceField(required=False, choices=EXPORT_FORMAT_CHOICES)

    def clean(self):
        cleaned_data = super().clean()
        start_date = cleaned_data.get('start_date')
        end_date = cleaned_data.get('end_date')
        if start_date and end_date and end_date < start_date:
            raise ValidationError("End date cannot be before start date.")
        return cleaned_data
