"""
Fleet Revenue Split - JSON API
Flask app exposing trip CSV parsing, dashboard aggregates, fee settings and
owner statements to the dashboard front end.
"""

import json
import logging
import os

# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------
_log_dir = os.path.dirname(os.path.abspath(__file__))
_log_handlers = [logging.StreamHandler()]
# Only add file handler when filesystem is writable
if not os.getenv('LOG_TO_STDOUT_ONLY'):
    try:
        _log_handlers.append(logging.FileHandler(os.path.join(_log_dir, 'app.log'), encoding='utf-8'))
    except OSError:
        pass
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s [%(levelname)s] %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S',
    handlers=_log_handlers,
)
log = logging.getLogger('fleetsplit')

from dotenv import load_dotenv
load_dotenv()

from flask import Flask, request, jsonify

import metrics
import settings
import statements
from allocation import AllocationPolicy
from ingest import decode_bytes, parse_trip_csv
from models import CsvParseError, MissingColumnsError
from parsers import parse_money_cents

app = Flask(__name__)
app.secret_key = os.getenv('FLASK_SECRET_KEY', os.urandom(24).hex())
app.config['MAX_CONTENT_LENGTH'] = 25 * 1024 * 1024  # 25 MB


# ---------------------------------------------------------------------------
# Request helpers
# ---------------------------------------------------------------------------

def _request_options() -> dict:
    """Options from a JSON body, or from form fields of a multipart upload."""
    if request.is_json:
        body = request.get_json(silent=True) or {}
        if not isinstance(body, dict):
            raise ValueError('Request body must be a JSON object')
        return body
    opts = {}
    for key in ('overrides', 'owners', 'vehicles', 'expenses'):
        raw = request.form.get(key)
        if raw:
            try:
                opts[key] = json.loads(raw)
            except json.JSONDecodeError:
                raise ValueError(f'Field "{key}" is not valid JSON')
    for key in ('month',):
        if request.form.get(key):
            opts[key] = request.form[key]
    opts['completed_only'] = request.form.get('completed_only', '').lower() in ('1', 'true', 'yes')
    return opts


def _request_csv_text(opts: dict) -> str:
    f = request.files.get('file')
    if f and f.filename:
        return decode_bytes(f.read())
    if opts.get('csv'):
        return str(opts['csv'])
    if not request.is_json and not request.files:
        return decode_bytes(request.get_data())
    return ''


def _request_policy(opts: dict) -> AllocationPolicy:
    """Saved fee settings with any per-request overrides layered on top."""
    saved = settings.load_fee_settings()
    extra = opts.get('overrides') or {}
    if not isinstance(extra, dict):
        raise ValueError('"overrides" must be an object')
    overrides = dict(saved.overrides)
    overrides.update(extra)
    return AllocationPolicy.from_overrides(overrides)


def _string_list(opts: dict, key: str):
    """A list-of-names filter from the request, or None when not given."""
    value = opts.get(key)
    if value is None or value == []:
        return None
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ValueError(f'"{key}" must be a list of names')
    return value


def _request_expenses(opts: dict) -> list:
    raw_expenses = opts.get('expenses') or []
    if not isinstance(raw_expenses, list):
        raise ValueError('"expenses" must be a list')
    expenses = []
    for i, raw in enumerate(raw_expenses):
        if not isinstance(raw, dict):
            raise ValueError(f'Expense {i + 1} must be an object')
        cents = parse_money_cents(str(raw.get('amount', '')))
        if cents is None or not raw.get('ownerName') or not raw.get('date'):
            raise ValueError(f'Expense {i + 1} needs ownerName, date and a valid amount')
        expenses.append(statements.OwnerExpense(
            id=str(raw.get('id') or f'EXP-{i + 1}'),
            owner_name=str(raw['ownerName']),
            description=str(raw.get('description', '')),
            date=str(raw['date']),
            amount_cents=cents,
        ))
    return expenses


def _parse_request():
    opts = _request_options()
    for key in ('owners', 'vehicles'):
        opts[key] = _string_list(opts, key)
    text = _request_csv_text(opts)
    result = parse_trip_csv(text, policy=_request_policy(opts))
    return opts, result


def _error(message: str, status: int = 400, **extra):
    body = {'error': message}
    body.update(extra)
    return jsonify(body), status


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

@app.route('/api/status')
def api_status():
    policy = settings.load_fee_settings()
    return jsonify({'status': 'ok', 'line_items': len(policy.line_items),
                    'overrides': len(policy.overrides)})


@app.route('/api/parse', methods=['POST'])
def api_parse():
    """Parse an uploaded trip CSV and return records, warnings and dashboard data."""
    try:
        opts, result = _parse_request()
    except MissingColumnsError as e:
        return _error(str(e), missing=e.missing)
    except (CsvParseError, ValueError) as e:
        return _error(str(e))

    selected = metrics.filter_records(
        result.records,
        month=opts.get('month'),
        owners=opts.get('owners'),
        vehicles=opts.get('vehicles'),
        completed_only=bool(opts.get('completed_only')),
    )
    dashboard = metrics.build_dashboard_data(selected, **settings.labor_settings())
    log.info("Parsed upload: %d records (%d selected), %d warnings",
             len(result.records), len(selected), len(result.warnings))
    return jsonify({
        'records': [r.to_dict() for r in result.records],
        'warnings': result.warnings,
        'months': metrics.month_options(result.records),
        'dashboard': dashboard,
    })


@app.route('/api/fee-settings', methods=['GET'])
def api_get_fee_settings():
    policy = settings.load_fee_settings()
    return jsonify(policy.to_dict())


@app.route('/api/fee-settings', methods=['PUT', 'POST'])
def api_save_fee_settings():
    """Replace the saved overrides. Body: {"overrides": {"Trip price": 75}}."""
    data = request.get_json(silent=True) or {}
    overrides = data.get('overrides', {})
    if not isinstance(overrides, dict):
        return _error('"overrides" must be an object')
    try:
        policy = AllocationPolicy.from_overrides(overrides)
    except ValueError as e:
        return _error(str(e))
    settings.save_fee_settings(policy)
    return jsonify(policy.to_dict())


@app.route('/api/statements', methods=['POST'])
def api_statements():
    """Owner statements for one trip-end month of an uploaded trip CSV."""
    try:
        opts, result = _parse_request()
        expenses = _request_expenses(opts)
    except (CsvParseError, ValueError) as e:
        return _error(str(e))

    month = opts.get('month')
    if not isinstance(month, str) or not month or month == 'all':
        return _error('A statement month (YYYY-MM) is required')

    records = metrics.filter_records(result.records, completed_only=bool(opts.get('completed_only')))
    stmts = statements.build_owner_statements(records, month, expenses)
    return jsonify({'statements': [s.to_dict() for s in stmts], 'warnings': result.warnings})


if __name__ == '__main__':
    port = int(os.environ.get('PORT', 8000))
    app.run(host='0.0.0.0', port=port, debug=False)
