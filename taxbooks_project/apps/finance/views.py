"""
Finance Views - UAE VAT 201 computation and Account Ledger drill-down/exports.

Ledger lines and VAT drafts are fetched from the bookkeeping backend by the
client and posted here as JSON; nothing is persisted.
"""
import json
import logging

from django.http import HttpResponse, JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from .exports import (
    CONTENT_TYPES, ExportError, export_ledger_csv, export_ledger_excel, export_ledger_pdf,
    export_vat_return_excel, ledger_export_filename, vat_return_filename,
)
from .forms import LedgerFilterForm
from .ledger import LedgerAccount, LedgerEntry, build_account_ledger, sort_entries
from .vat import VATFieldError, VATReturnInput, VATReturnLockedError

logger = logging.getLogger(__name__)


class BadRequest(Exception):
    pass


def _load_json(request):
    try:
        payload = json.loads(request.body or b'{}')
    except (ValueError, UnicodeDecodeError) as exc:
        raise BadRequest(f'Invalid JSON: {exc}') from exc
    if not isinstance(payload, dict):
        raise BadRequest('Request body must be a JSON object.')
    return payload


def _error(message, status=400, **extra):
    return JsonResponse({'error': message, **extra}, status=status)


def _file_response(content, content_type, filename):
    """HttpResponse for a file download."""
    response = HttpResponse(content, content_type=content_type)
    response['Content-Disposition'] = f'attachment; filename="{filename}"'
    return response


def _vat_return_from_payload(payload):
    vat_return = VATReturnInput.from_draft(payload.get('return') or {})
    if payload.get('status'):
        vat_return.status = payload['status']
    vat_return.apply_edits(payload.get('edits') or [])
    return vat_return


# ============ VAT 201 ============

@csrf_exempt
@require_POST
def vat_return_compute(request):
    """
    Apply field edits to a VAT 201 draft and return the recomputed boxes.

    Body: {"return": {...}, "edits": [[field, raw value], ...], "status": "draft", "camel": false}
    """
    try:
        payload = _load_json(request)
        vat_return = _vat_return_from_payload(payload)
        summary = vat_return.summary()
    except BadRequest as exc:
        return _error(str(exc))
    except VATFieldError as exc:
        return _error(f'Unknown VAT 201 field: {exc.args[0]}')
    except VATReturnLockedError as exc:
        return _error(str(exc))
    except (TypeError, ValueError, ArithmeticError) as exc:
        return _error(f'Invalid VAT 201 data: {exc}')

    return JsonResponse({
        'status': vat_return.status,
        'return': vat_return.to_dict(camel=bool(payload.get('camel'))),
        'summary': summary,
    })


@csrf_exempt
@require_POST
def vat_return_export(request):
    """VAT 201 Excel download."""
    try:
        payload = _load_json(request)
        vat_return = _vat_return_from_payload(payload)
    except BadRequest as exc:
        return _error(str(exc))
    except (VATFieldError, VATReturnLockedError, TypeError, ValueError, ArithmeticError) as exc:
        return _error(f'Invalid VAT 201 data: {exc}')

    try:
        content = export_vat_return_excel(
            vat_return, company=payload.get('company'), period=payload.get('period')
        )
    except ExportError as exc:
        return _error('Export failed', status=500, detail=str(exc))
    return _file_response(content, CONTENT_TYPES['xlsx'], vat_return_filename())


# ============ ACCOUNT LEDGER ============

LEDGER_EXPORTS = {
    'csv': (export_ledger_csv, 'csv'),
    'pdf': (export_ledger_pdf, 'pdf'),
    'excel': (export_ledger_excel, 'xlsx'),
}


@csrf_exempt
@require_POST
def account_ledger(request):
    """
    Account Ledger - running balances, totals and exports for one account.

    Body: {"account": {"name", "type", "opening_balance"}, "entries": [...],
           "start_date", "end_date", "search", "page", "page_size", "format"}

    format '' / 'json' returns one page plus the full-period summary;
    'csv', 'pdf' and 'excel' download the whole filtered set.
    """
    try:
        payload = _load_json(request)
    except BadRequest as exc:
        return _error(str(exc))

    filters = LedgerFilterForm(data={
        key: payload.get(key)
        for key in ('start_date', 'end_date', 'search', 'page', 'page_size', 'format')
        if payload.get(key) not in (None, '')
    })
    if not filters.is_valid():
        return _error('Invalid ledger filters', errors=filters.errors)
    options = filters.cleaned_data

    try:
        account = LedgerAccount.from_dict(payload.get('account'))
        entries = sort_entries(LedgerEntry.from_dict(row) for row in payload.get('entries') or [])
        ledger = build_account_ledger(
            account,
            entries,
            start_date=options.get('start_date'),
            end_date=options.get('end_date'),
            search=options.get('search'),
            page=options.get('page') or 1,
            page_size=options.get('page_size'),
        )
    except (TypeError, ValueError, AttributeError, ArithmeticError) as exc:
        return _error(f'Invalid ledger data: {exc}')

    export_format = options.get('format') or 'json'
    if export_format in LEDGER_EXPORTS:
        exporter, extension = LEDGER_EXPORTS[export_format]
        try:
            content = exporter(ledger)
        except ExportError as exc:
            return _error('Export failed', status=500, detail=str(exc))
        return _file_response(
            content,
            CONTENT_TYPES[extension],
            ledger_export_filename(account.name, extension),
        )

    return JsonResponse(ledger.to_dict())
