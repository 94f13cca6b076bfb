import copy
import json
import logging
import os

from catequesis.calendar_logic import REPORT_TIMEZONE
from catequesis.notifications import BULK_EMAIL_CAP
from catequesis.statistics import AT_RISK_THRESHOLD


DEFAULTS = {
    'at_risk_threshold': AT_RISK_THRESHOLD,
    'bulk_email_cap': BULK_EMAIL_CAP,
    'timezone': REPORT_TIMEZONE,
    'functions_url': '',
    'gemini_url': 'https://generativelanguage.googleapis.com/v1beta/models',
    'report': {
        'model': 'gemini-2.0-flash',
        'temperature': 0.7,
        'max_chars': 14000,
        'students_worst': 12,
        'students_best': 8,
        'students_min_days': 3,
        'catechists_worst': 10,
        'catechists_best': 8,
    },
}

# Secretos: nunca en el fichero de configuración
ENV_KEYS = {
    'gemini_api_key': 'GEMINI_API_KEY',
    'functions_url': 'CATEQUESIS_FUNCTIONS_URL',
    'token': 'CATEQUESIS_TOKEN',
}


def _config_path():
    base = os.path.join(os.path.expanduser('~'), '.catequesis')
    os.makedirs(base, exist_ok=True)
    return os.path.join(base, 'catequesis_config.json')


def _merge(base: dict, override: dict) -> dict:
    out = copy.deepcopy(base)
    for key, value in (override or {}).items():
        if isinstance(value, dict) and isinstance(out.get(key), dict):
            out[key] = _merge(out[key], value)
        else:
            out[key] = value
    return out


def load_config(path: str = None) -> dict:
    path = path or _config_path()
    cfg = copy.deepcopy(DEFAULTS)
    if os.path.exists(path):
        try:
            with open(path, 'r', encoding='utf-8') as f:
                cfg = _merge(cfg, json.load(f))
        except (OSError, ValueError) as e:
            logging.warning(f"Configuración ilegible ({path}): {e}; se usan valores por defecto")
    for key, env in ENV_KEYS.items():
        if os.environ.get(env):
            cfg[key] = os.environ[env]
    return cfg


def save_config(cfg: dict, path: str = None):
    path = path or _config_path()
    public = {k: v for k, v in cfg.items() if k not in ('gemini_api_key', 'token')}
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(public, f, ensure_ascii=False, indent=2)
