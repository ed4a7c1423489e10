"""
Form tests for VAT 201 review and ledger filters.
"""
from datetime import date
from decimal import Decimal

from django.test import SimpleTestCase

from apps.finance.forms import LedgerFilterForm, VAT201Form


class VAT201FormTest(SimpleTestCase):

    def test_blank_form_is_zero_return(self):
        form = VAT201Form(data={})
        self.assertTrue(form.is_valid(), form.errors)
        vat_return = form.cleaned_return()
        self.assertEqual(vat_return.net_vat(), Decimal('0'))

    def test_values_are_kept_as_entered(self):
        form = VAT201Form(data={'box1b_dubai_amount': '1000', 'box1b_dubai_vat': '49.50'})
        self.assertTrue(form.is_valid(), form.errors)
        vat_return = form.cleaned_return()
        self.assertEqual(vat_return.box1b_dubai_vat, Decimal('49.50'))
        self.assertEqual(vat_return.status, 'draft')

    def test_adjustment_requires_reason(self):
        """FTA requirement: adjustments need a reason."""
        form = VAT201Form(data={'box1a_abu_dhabi_adjustment': '-25'})
        self.assertFalse(form.is_valid())
        self.assertIn('Adjustment reason is mandatory', str(form.non_field_errors()))

        form = VAT201Form(data={'box9_expenses_adjustment': '10', 'adjustment_reason': 'Credit note'})
        self.assertTrue(form.is_valid(), form.errors)


class LedgerFilterFormTest(SimpleTestCase):

    def test_valid(self):
        form = LedgerFilterForm(data={'start_date': '2025-01-01', 'end_date': '2025-01-31', 'format': 'csv'})
        self.assertTrue(form.is_valid(), form.errors)
        self.assertEqual(form.cleaned_data['start_date'], date(2025, 1, 1))

    def test_end_before_start(self):
        form = LedgerFilterForm(data={'start_date': '2025-02-01', 'end_date': '2025-01-31'})
        self.assertFalse(form.is_valid())

    def test_unknown_format(self):
        form = LedgerFilterForm(data={'format': 'docx'})
        self.assertFalse(form.is_valid())
