"""
Export an Account Ledger from a JSON dump of the backend ledger response.

The file holds {"account": {...}, "entries": [...]} (or the backend's
{"account", "allEntries", "openingBalance"} shape). The whole filtered entry
set is exported, never a single page.

Usage:
    python manage.py export_ledger ledger.json --format csv
    python manage.py export_ledger ledger.json --format pdf --start-date 2025-01-01
"""
import json
from pathlib import Path

from django.core.management.base import BaseCommand, CommandError

from apps.finance.exports import (
    ExportError, export_ledger_csv, export_ledger_excel, export_ledger_pdf, ledger_export_filename,
)
from apps.finance.ledger import LedgerAccount, LedgerEntry, build_account_ledger, parse_date, sort_entries


EXPORTERS = {
    'csv': (export_ledger_csv, 'csv'),
    'pdf': (export_ledger_pdf, 'pdf'),
    'excel': (export_ledger_excel, 'xlsx'),
}


class Command(BaseCommand):
    help = 'Export an account ledger to CSV, PDF or Excel'

    def add_arguments(self, parser):
        parser.add_argument('source', help='Path to a JSON ledger dump')
        parser.add_argument('--format', choices=sorted(EXPORTERS), default='csv')
        parser.add_argument('--output', help='Output file (defaults to ledger_<account>_<YYYYMMDD>.<ext>)')
        parser.add_argument('--start-date', help='YYYY-MM-DD')
        parser.add_argument('--end-date', help='YYYY-MM-DD')
        parser.add_argument('--search', help='Filter by entry number, memo or description')

    def handle(self, *args, **options):
        try:
            with open(options['source'], encoding='utf-8') as fh:
                data = json.load(fh)
        except (OSError, ValueError) as exc:
            raise CommandError(f"Could not read ledger dump: {exc}")
        if not isinstance(data, dict):
            raise CommandError("Ledger dump must be a JSON object")

        rows = data.get('entries') or data.get('allEntries') or []

        try:
            account_data = dict(data.get('account') or {})
            if 'openingBalance' in data and 'opening_balance' not in account_data:
                account_data['opening_balance'] = data['openingBalance']
            account = LedgerAccount.from_dict(account_data)
            entries = sort_entries(LedgerEntry.from_dict(row) for row in rows)
            ledger = build_account_ledger(
                account,
                entries,
                start_date=parse_date(options.get('start_date')),
                end_date=parse_date(options.get('end_date')),
                search=options.get('search'),
            )
        except (TypeError, ValueError, AttributeError) as exc:
            raise CommandError(f"Invalid ledger data: {exc}")

        exporter, extension = EXPORTERS[options['format']]
        try:
            content = exporter(ledger)
        except ExportError as exc:
            raise CommandError(f"Export failed: {exc}")

        output = Path(options.get('output') or ledger_export_filename(account.name, extension))
        if isinstance(content, str):
            output.write_text(content, encoding='utf-8')
        else:
            output.write_bytes(content)

        self.stdout.write(self.style.SUCCESS(
            f"Exported {ledger.total_count} entries to {output}"
        ))
