"""
Fee settings persistence and environment configuration.

Fee settings are stored as a small JSON document:
    {"version": 1, "overrides": {"Trip price": 75, "Cleaning": 0}}
where each override is the owner % (0-100) for one line item.
"""

import json
import logging
import os
from typing import Optional

import metrics
from allocation import AllocationPolicy

log = logging.getLogger('fleetsplit')

SETTINGS_VERSION = 1
DEFAULT_SETTINGS_FILE = 'fee_settings.json'


def default_settings_path() -> str:
    """FEE_SETTINGS_PATH if set, else fee_settings.json next to this module."""
    path = os.getenv('FEE_SETTINGS_PATH', '')
    if path:
        return path
    return os.path.join(os.path.dirname(os.path.abspath(__file__)), DEFAULT_SETTINGS_FILE)


def policy_from_settings(data: dict) -> AllocationPolicy:
    """Build a policy from a settings document. Raises ValueError if malformed."""
    if not isinstance(data, dict) or data.get('version') != SETTINGS_VERSION:
        raise ValueError(f"Unsupported fee settings version: {data.get('version') if isinstance(data, dict) else data!r}")
    overrides = data.get('overrides') or {}
    if not isinstance(overrides, dict):
        raise ValueError('Fee settings "overrides" must be an object')
    return AllocationPolicy.from_overrides(overrides)


def settings_from_policy(policy: AllocationPolicy) -> dict:
    return {'version': SETTINGS_VERSION, 'overrides': dict(policy.overrides)}


def load_fee_settings(path: Optional[str] = None) -> AllocationPolicy:
    """Load fee settings, falling back to the default table on any problem."""
    path = path or default_settings_path()
    if not os.path.isfile(path):
        return AllocationPolicy()
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
        return policy_from_settings(data)
    except (json.JSONDecodeError, IOError, ValueError) as e:
        log.warning("Ignoring fee settings at %s: %s", path, e)
        return AllocationPolicy()


def save_fee_settings(policy: AllocationPolicy, path: Optional[str] = None) -> str:
    """Write the policy's overrides to disk. Returns the path written."""
    path = path or default_settings_path()
    parent = os.path.dirname(path)
    if parent:
        os.makedirs(parent, exist_ok=True)
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(settings_from_policy(policy), f, indent=2)
    log.info("Saved fee settings (%d overrides) to %s", len(policy.overrides), path)
    return path


# ---------------------------------------------------------------------------
# Environment
# ---------------------------------------------------------------------------

def env_float(name: str, default: float) -> float:
    raw = os.getenv(name, '').strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        log.warning("%s=%r is not a number, using %s", name, raw, default)
        return default


def labor_settings() -> dict:
    """Labour assumptions for build_dashboard_data(), read from the environment."""
    return {
        'labor_hours_per_booking': env_float('LABOR_HOURS_PER_BOOKING', metrics.LABOR_HOURS_PER_BOOKING),
        'labor_rate': env_float('LABOR_HOURLY_RATE', metrics.LABOR_HOURLY_RATE),
    }
