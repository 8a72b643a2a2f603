from .json_utils import extract_json_object, normalize_keys
from .time_utils import utcnow, ensure_utc, months_from_days

__all__ = [
    "extract_json_object",
    "normalize_keys",
    "utcnow",
    "ensure_utc",
    "months_from_days",
]
