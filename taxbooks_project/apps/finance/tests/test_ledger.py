"""
Account Ledger aggregation tests.

Test Cases Covered:
- TC-GL-01 to TC-GL-04: Running balances and summary
- TC-GL-05 to TC-GL-07: Filters, opening balance, pagination
- TC-EDGE-01 to TC-EDGE-03: Empty ledgers, unknown account types, record parsing

Run: python manage.py test apps.finance.tests.test_ledger -v 2
"""
from datetime import date, datetime
from decimal import Decimal

from django.test import SimpleTestCase

from apps.finance.ledger import (
    LedgerAccount, LedgerEntry, NormalBalance, build_account_ledger, compute_running_balances,
    compute_summary, filter_entries, normal_balance_sign, opening_balance_before, sort_entries,
)
from apps.finance.tests.factories import bank_account, make_entries, make_entry


class RunningBalanceTest(SimpleTestCase):

    def test_debit_then_credit_scenario(self):
        """TC-GL-01: 1000 opening, +500 debit, -200 credit."""
        entries = [
            make_entry(date(2025, 1, 5), debit=500),
            make_entry(date(2025, 1, 9), credit=200),
        ]
        balanced = compute_running_balances(entries, Decimal('1000'))
        summary = compute_summary(entries, Decimal('1000'))

        self.assertEqual([e.running_balance for e in balanced], [Decimal('1500'), Decimal('1300')])
        self.assertEqual(summary.total_debit, Decimal('500'))
        self.assertEqual(summary.total_credit, Decimal('200'))
        self.assertEqual(summary.closing_balance, Decimal('1300'))

    def test_closing_equals_last_running_balance(self):
        """TC-GL-02: closing balance matches the last running balance for both signs."""
        entries = make_entries(57)
        for sign in (NormalBalance.DEBIT, NormalBalance.CREDIT):
            with self.subTest(sign=sign):
                balanced = compute_running_balances(entries, Decimal('250'), sign)
                summary = compute_summary(entries, Decimal('250'), sign)
                self.assertEqual(summary.closing_balance, balanced[-1].running_balance)

    def test_credit_normal_account(self):
        """TC-GL-03: liabilities grow with credits."""
        entries = [
            make_entry(date(2025, 2, 1), credit=800),
            make_entry(date(2025, 2, 2), debit=300),
        ]
        balanced = compute_running_balances(entries, Decimal('100'), normal_balance_sign('liability'))
        self.assertEqual([e.running_balance for e in balanced], [Decimal('900'), Decimal('600')])
        summary = compute_summary(entries, Decimal('100'), NormalBalance.CREDIT)
        self.assertEqual(summary.closing_balance, Decimal('600'))

    def test_idempotent_and_input_untouched(self):
        """TC-GL-04: identical input gives identical output; inputs are not modified."""
        entries = make_entries(10)
        first = compute_running_balances(entries, Decimal('10'))
        second = compute_running_balances(entries, Decimal('10'))
        self.assertEqual(first, second)
        self.assertEqual(compute_summary(entries, 10), compute_summary(entries, 10))
        self.assertTrue(all(entry.running_balance is None for entry in entries))

    def test_unsorted_input_is_not_resorted(self):
        late = make_entry(date(2025, 3, 1), debit=10)
        early = make_entry(date(2025, 1, 1), credit=5)
        balanced = compute_running_balances([late, early], 0)
        self.assertEqual(balanced[0].date, date(2025, 3, 1))
        self.assertEqual(sort_entries([late, early])[0].date, date(2025, 1, 1))

    def test_sort_is_stable_for_same_day(self):
        day = date(2025, 1, 1)
        first = make_entry(day, debit=1, number='JE-1')
        second = make_entry(day, debit=2, number='JE-2')
        self.assertEqual([e.entry_number for e in sort_entries([first, second])], ['JE-1', 'JE-2'])


class NormalBalanceTest(SimpleTestCase):

    def test_signs(self):
        self.assertEqual(normal_balance_sign('asset'), 1)
        self.assertEqual(normal_balance_sign('Expense'), 1)
        for account_type in ['liability', 'equity', 'income', 'revenue']:
            self.assertEqual(normal_balance_sign(account_type), -1)

    def test_unknown_type(self):
        """TC-EDGE-02"""
        with self.assertRaises(ValueError):
            normal_balance_sign('suspense')


class AccountLedgerTest(SimpleTestCase):

    def test_filters(self):
        """TC-GL-05: date window, search and posted-only."""
        entries = [
            make_entry(date(2025, 1, 1), debit=100, number='JE-0001', description='Opening sale'),
            make_entry(date(2025, 1, 15), debit=50, number='JE-0002', memo='Rent January'),
            make_entry(date(2025, 1, 20), debit=75, number='JE-0003', status='draft'),
            make_entry(date(2025, 2, 1), credit=30, number='JE-0004', description='Bank fee'),
        ]
        window = filter_entries(entries, date(2025, 1, 15), date(2025, 2, 1))
        self.assertEqual([e.entry_number for e in window], ['JE-0002', 'JE-0004'])
        self.assertEqual([e.entry_number for e in filter_entries(entries, search='rent')], ['JE-0002'])
        self.assertEqual([e.entry_number for e in filter_entries(entries, search='je-0004')], ['JE-0004'])
        self.assertEqual(len(filter_entries(entries, posted_only=False)), 4)

    def test_opening_balance_before_start(self):
        """TC-GL-06: opening includes posted movement before the window."""
        entries = [
            make_entry(date(2024, 12, 1), debit=400),
            make_entry(date(2024, 12, 20), credit=100),
            make_entry(date(2024, 12, 21), debit=999, status='draft'),
            make_entry(date(2025, 1, 3), debit=50),
        ]
        opening = opening_balance_before(entries, date(2025, 1, 1), NormalBalance.DEBIT, Decimal('1000'))
        self.assertEqual(opening, Decimal('1300'))

        ledger = build_account_ledger(bank_account(), entries, start_date='2025-01-01')
        self.assertEqual(ledger.summary.opening_balance, Decimal('1300'))
        self.assertEqual(ledger.total_count, 1)
        self.assertEqual(ledger.summary.closing_balance, Decimal('1350'))

    def test_pagination_keeps_full_set(self):
        """TC-GL-07: 57 entries with 25 per page -> 3 pages, 57 for export."""
        entries = make_entries(57)
        ledger = build_account_ledger(bank_account(), entries, page=3, page_size=25)

        self.assertEqual(ledger.total_count, 57)
        self.assertEqual(ledger.total_pages, 3)
        self.assertEqual(len(ledger.entries), 7)
        self.assertEqual(len(ledger.all_entries), 57)
        self.assertEqual(ledger.entries[0], ledger.all_entries[50])
        self.assertEqual(ledger.summary.closing_balance, ledger.all_entries[-1].running_balance)

        full = compute_summary(entries, Decimal('1000'))
        self.assertEqual(ledger.summary, full)

    def test_default_page_size_from_settings(self):
        ledger = build_account_ledger(bank_account(), make_entries(30))
        self.assertEqual(ledger.page_size, 25)
        self.assertEqual(len(ledger.entries), 25)

    def test_empty_ledger(self):
        """TC-EDGE-01"""
        ledger = build_account_ledger(bank_account('0'), [])
        self.assertEqual(ledger.total_count, 0)
        self.assertEqual(ledger.summary.total_debit, Decimal('0'))
        self.assertEqual(ledger.summary.closing_balance, Decimal('0'))
        self.assertEqual(ledger.period_label, 'Period: All time')

    def test_to_dict(self):
        ledger = build_account_ledger(bank_account(), make_entries(3), page_size=2)
        data = ledger.to_dict()
        self.assertEqual(data['account']['name'], 'Cash at Bank')
        self.assertEqual(len(data['entries']), 2)
        self.assertEqual(data['total_count'], 3)
        self.assertEqual(data['opening_balance'], Decimal('1000'))


class RecordParsingTest(SimpleTestCase):

    def test_entry_from_backend_record(self):
        """TC-EDGE-03: camelCase keys, ISO timestamps, missing amounts."""
        entry = LedgerEntry.from_dict({
            'id': 'line-9',
            'date': '2025-03-04T10:15:00.000Z',
            'entryNumber': 'JE-2025-0042',
            'description': '',
            'memo': 'Office rent',
            'debit': '1500.50',
            'journalEntryId': 'je-42',
        })
        self.assertEqual(entry.date, date(2025, 3, 4))
        self.assertEqual(entry.debit, Decimal('1500.50'))
        self.assertEqual(entry.credit, Decimal('0.00'))
        self.assertEqual(entry.display_description, 'Office rent')
        self.assertEqual(entry.journal_line_id, 'line-9')
        self.assertEqual(entry.status, 'posted')

    def test_entry_accepts_datetime(self):
        entry = LedgerEntry.from_dict({'date': datetime(2025, 5, 1, 9, 30), 'credit': 10})
        self.assertEqual(entry.date, date(2025, 5, 1))

    def test_entry_without_date_is_rejected(self):
        for record in [{'debit': 10}, {'date': '', 'credit': 5}, {'date': None}]:
            with self.subTest(record=record):
                with self.assertRaises(ValueError):
                    LedgerEntry.from_dict(record)
        with self.assertRaises(ValueError):
            LedgerEntry.from_dict({'date': 'yesterday'})

    def test_account_from_backend_record(self):
        account = LedgerAccount.from_dict({'nameEn': 'VAT Payable', 'type': 'liability', 'openingBalance': 50})
        self.assertEqual(account.name, 'VAT Payable')
        self.assertEqual(account.sign, NormalBalance.CREDIT)
        self.assertEqual(account.opening_balance, Decimal('50'))
