"""
Account Ledger - running balances and period summary for one account.

Entries must be supplied in chronological order (date ascending, ties in
creation order). The aggregator never re-sorts: mis-ordered input yields
wrong running balances without any error. Use sort_entries() upstream.
"""
from __future__ import annotations

import enum
import logging
import math
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from decimal import Decimal
from typing import Iterable, List, Optional

from django.conf import settings

from apps.core.utils import ZERO, to_decimal

logger = logging.getLogger(__name__)


class NormalBalance(enum.IntEnum):
    DEBIT = 1
    CREDIT = -1


DEBIT_NORMAL_TYPES = ('asset', 'expense')
CREDIT_NORMAL_TYPES = ('liability', 'equity', 'income', 'revenue')


def normal_balance_sign(account_type):
    """
    +1 for debit-normal accounts (asset, expense),
    -1 for credit-normal accounts (liability, equity, income/revenue).
    """
    key = (account_type or '').strip().lower()
    if key in DEBIT_NORMAL_TYPES:
        return NormalBalance.DEBIT
    if key in CREDIT_NORMAL_TYPES:
        return NormalBalance.CREDIT
    raise ValueError(f"Unknown account type: {account_type!r}")


def parse_date(value):
    """Accept date, datetime or ISO string (YYYY-MM-DD[THH:MM:SS])."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not value:
        return None
    text = str(value).strip()
    try:
        return datetime.fromisoformat(text.replace('Z', '+00:00')).date()
    except ValueError:
        return date.fromisoformat(text[:10])


def _pick(data, *keys, default=None):
    for key in keys:
        if data.get(key) is not None:
            return data[key]
    return default


@dataclass(frozen=True)
class LedgerEntry:
    """One posted journal line affecting a single account."""
    date: date
    entry_number: str = ''
    description: str = ''
    memo: str = ''
    debit: Decimal = ZERO
    credit: Decimal = ZERO
    source: str = ''
    journal_entry_id: str = ''
    journal_line_id: str = ''
    status: str = 'posted'
    running_balance: Optional[Decimal] = None

    @classmethod
    def from_dict(cls, data):
        """Build from a backend record (camelCase or snake_case keys)."""
        entry_date = parse_date(data.get('date'))
        if entry_date is None:
            raise ValueError(f"Ledger entry has no date: {data!r}")
        return cls(
            date=entry_date,
            entry_number=str(_pick(data, 'entry_number', 'entryNumber', default='')),
            description=_pick(data, 'description', 'lineDescription', default='') or '',
            memo=data.get('memo') or '',
            debit=to_decimal(data.get('debit')),
            credit=to_decimal(data.get('credit')),
            source=data.get('source') or '',
            journal_entry_id=str(_pick(data, 'journal_entry_id', 'journalEntryId', default='')),
            journal_line_id=str(_pick(data, 'journal_line_id', 'journalLineId', 'id', default='')),
            status=data.get('status') or 'posted',
        )

    @property
    def display_description(self):
        """Line description, falling back to the journal memo."""
        return self.description or self.memo or ''

    @property
    def net_movement(self):
        return self.debit - self.credit

    def to_dict(self):
        return {
            'date': self.date.isoformat() if self.date else None,
            'entry_number': self.entry_number,
            'description': self.display_description,
            'memo': self.memo,
            'debit': self.debit,
            'credit': self.credit,
            'running_balance': self.running_balance,
            'source': self.source,
            'journal_entry_id': self.journal_entry_id,
            'journal_line_id': self.journal_line_id,
            'status': self.status,
        }


@dataclass(frozen=True)
class LedgerSummary:
    opening_balance: Decimal
    total_debit: Decimal
    total_credit: Decimal
    closing_balance: Decimal

    def to_dict(self):
        return {
            'opening_balance': self.opening_balance,
            'total_debit': self.total_debit,
            'total_credit': self.total_credit,
            'closing_balance': self.closing_balance,
        }


@dataclass
class LedgerAccount:
    name: str
    account_type: str = 'asset'
    code: str = ''
    name_ar: str = ''
    opening_balance: Decimal = ZERO

    @classmethod
    def from_dict(cls, data):
        data = data or {}
        return cls(
            name=_pick(data, 'name', 'nameEn', default='') or '',
            account_type=_pick(data, 'type', 'account_type', 'accountType', default='asset'),
            code=str(data.get('code') or ''),
            name_ar=_pick(data, 'name_ar', 'nameAr', default='') or '',
            opening_balance=to_decimal(_pick(data, 'opening_balance', 'openingBalance')),
        )

    @property
    def sign(self):
        return normal_balance_sign(self.account_type)


@dataclass
class AccountLedger:
    """A filtered ledger: the full entry set plus the page being displayed."""
    account: LedgerAccount
    all_entries: List[LedgerEntry]
    summary: LedgerSummary
    page: int = 1
    page_size: int = 25
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    entries: List[LedgerEntry] = field(default_factory=list)

    @property
    def total_count(self):
        return len(self.all_entries)

    @property
    def total_pages(self):
        return math.ceil(self.total_count / self.page_size) if self.page_size else 1

    @property
    def period_label(self):
        if self.start_date and self.end_date:
            return (
                f"Period: {self.start_date.strftime('%b %d, %Y')} - "
                f"{self.end_date.strftime('%b %d, %Y')}"
            )
        return 'Period: All time'

    def to_dict(self):
        return {
            'account': {
                'code': self.account.code,
                'name': self.account.name,
                'type': self.account.account_type,
            },
            'entries': [entry.to_dict() for entry in self.entries],
            'page': self.page,
            'page_size': self.page_size,
            'total_count': self.total_count,
            'total_pages': self.total_pages,
            **self.summary.to_dict(),
        }


def sort_entries(entries: Iterable[LedgerEntry]) -> List[LedgerEntry]:
    """Stable sort by date; equal dates keep their creation order."""
    return sorted(entries, key=lambda entry: entry.date)


def compute_running_balances(entries, opening_balance=ZERO, normal_balance_sign=NormalBalance.DEBIT):
    """
    Running balance per entry:
        balance[i] = balance[i-1] + sign * (debit[i] - credit[i])
        balance[-1] = opening_balance

    Returns new LedgerEntry instances; the input is not modified.
    """
    sign = int(normal_balance_sign)
    balance = to_decimal(opening_balance)
    result = []
    for entry in entries:
        balance += sign * (entry.debit - entry.credit)
        result.append(replace(entry, running_balance=balance))
    return result


def compute_summary(entries, opening_balance=ZERO, normal_balance_sign=NormalBalance.DEBIT):
    """
    Totals over the full entry set (never a display page).

    closing = opening + sign * (total_debit - total_credit), which with the
    default debit-normal sign is opening + total_debit - total_credit.
    """
    opening = to_decimal(opening_balance)
    total_debit = sum((entry.debit for entry in entries), ZERO)
    total_credit = sum((entry.credit for entry in entries), ZERO)
    closing = opening + int(normal_balance_sign) * (total_debit - total_credit)
    return LedgerSummary(
        opening_balance=opening,
        total_debit=total_debit,
        total_credit=total_credit,
        closing_balance=closing,
    )


def opening_balance_before(entries, start_date, normal_balance_sign=NormalBalance.DEBIT, base=ZERO):
    """Account base opening plus signed movement of posted lines dated before start_date."""
    prior = [
        entry for entry in entries
        if entry.status == 'posted' and entry.date < start_date
    ]
    return compute_summary(prior, base, normal_balance_sign).closing_balance


def filter_entries(entries, start_date=None, end_date=None, search=None, posted_only=True):
    """Date window (inclusive), text search and posted-status filter."""
    result = []
    needle = (search or '').strip().lower()
    for entry in entries:
        if posted_only and entry.status != 'posted':
            continue
        if start_date and entry.date < start_date:
            continue
        if end_date and entry.date > end_date:
            continue
        if needle and not (
            needle in entry.entry_number.lower()
            or needle in entry.memo.lower()
            or needle in entry.description.lower()
        ):
            continue
        result.append(entry)
    return result


def build_account_ledger(account, entries, start_date=None, end_date=None, search=None,
                         page=1, page_size=None):
    """
    Filter, balance and paginate the ledger for one account.

    The opening balance for a dated window includes all posted lines before
    start_date. Running balances are computed over the whole filtered set so
    that a page in the middle still shows correct balances.
    """
    if page_size is None:
        page_size = getattr(settings, 'LEDGER_PAGE_SIZE', 25)
    page = max(int(page or 1), 1)
    sign = account.sign
    start_date = parse_date(start_date)
    end_date = parse_date(end_date)

    if start_date:
        opening = opening_balance_before(entries, start_date, sign, account.opening_balance)
    else:
        opening = account.opening_balance

    filtered = filter_entries(entries, start_date, end_date, search)
    all_entries = compute_running_balances(filtered, opening, sign)
    summary = compute_summary(all_entries, opening, sign)

    offset = (page - 1) * page_size
    page_entries = all_entries[offset:offset + page_size] if page_size else all_entries

    logger.debug(
        "Built ledger for %s: %d entries, page %d", account.name, len(all_entries), page
    )
    return AccountLedger(
        account=account,
        all_entries=all_entries,
        summary=summary,
        page=page,
        page_size=page_size,
        start_date=start_date,
        end_date=end_date,
        entries=page_entries,
    )
