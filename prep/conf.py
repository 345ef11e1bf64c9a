# prep/conf.py
from django.conf import settings

DEFAULTS = {
    "DEFAULT_TZ": "UTC",
    "TREND_DAYS": 7,
    "MAX_TREND_DAYS": 90,
    "RECENT_SESSIONS": 5,
}


def get_setting(name: str):
    """Read an app knob from settings.PREP_TRACKER, falling back to DEFAULTS."""
    overrides = getattr(settings, "PREP_TRACKER", {}) or {}
    if name in overrides:
        return overrides[name]
    return DEFAULTS[name]
