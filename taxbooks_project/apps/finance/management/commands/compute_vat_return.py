"""
Compute a UAE VAT 201 Return from a JSON draft.

The draft is a JSON object of box values (snake_case or the backend's
camelCase keys). Field edits given with --set are applied in order, so an
amount edit recomputes the sibling VAT at the standard rate.

Usage:
    python manage.py compute_vat_return draft.json --set box1b_dubai_amount=25000
"""
import json

from django.core.management.base import BaseCommand, CommandError
from django.core.serializers.json import DjangoJSONEncoder

from apps.core.utils import format_number
from apps.finance.vat import VATFieldError, VATReturnInput, VATReturnLockedError


class Command(BaseCommand):
    help = 'Compute VAT 201 box totals and the net payable/refundable position'

    def add_arguments(self, parser):
        parser.add_argument('draft', help='Path to a JSON VAT 201 draft')
        parser.add_argument(
            '--set',
            action='append',
            default=[],
            metavar='FIELD=VALUE',
            dest='edits',
            help='Edit a field before computing (repeatable)'
        )
        parser.add_argument(
            '--format',
            choices=['table', 'json'],
            default='table',
            help='Output format'
        )

    def handle(self, *args, **options):
        try:
            with open(options['draft'], encoding='utf-8') as fh:
                draft = json.load(fh)
        except (OSError, ValueError) as exc:
            raise CommandError(f"Could not read draft: {exc}")
        if not isinstance(draft, dict):
            raise CommandError("VAT 201 draft must be a JSON object of box values")

        vat_return = VATReturnInput.from_draft(draft)

        edits = []
        for edit in options['edits']:
            field_name, sep, value = edit.partition('=')
            if not sep:
                raise CommandError(f"Invalid --set value '{edit}', expected FIELD=VALUE")
            edits.append((field_name.strip(), value))

        try:
            vat_return.apply_edits(edits)
            summary = vat_return.summary()
        except VATFieldError as exc:
            raise CommandError(f"Unknown VAT 201 field: {exc.args[0]}")
        except VATReturnLockedError as exc:
            raise CommandError(str(exc))
        except ArithmeticError as exc:
            raise CommandError(f"Could not compute VAT 201 totals: {exc}")

        if options['format'] == 'json':
            self.stdout.write(json.dumps({
                'return': vat_return.to_dict(),
                'summary': summary,
            }, cls=DjangoJSONEncoder, indent=2))
            return

        rows = [
            ('Box 8  Total sales amount', summary['total_sales_amount']),
            ('Box 8  Total output VAT', summary['total_sales_vat']),
            ('Box 8  Total adjustments', summary['total_sales_adjustment']),
            ('Box 11 Total expenses amount', summary['total_input_amount']),
            ('Box 11 Total input VAT', summary['total_input_vat']),
            ('Box 12 Total due tax', summary['total_due_tax']),
            ('Box 13 Total recoverable tax', summary['total_recoverable_tax']),
        ]
        self.stdout.write('VAT 201 Return')
        self.stdout.write('=' * 50)
        for label, value in rows:
            self.stdout.write(f"{label:<34}{format_number(value):>16}")
        self.stdout.write('-' * 50)
        line = f"{'Box 14 Net VAT ' + summary['net_vat_label']:<34}{format_number(summary['net_vat_amount']):>16}"
        if summary['net_vat_label'] == 'Refundable':
            self.stdout.write(self.style.WARNING(line))
        else:
            self.stdout.write(self.style.SUCCESS(line))
