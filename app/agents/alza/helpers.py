import json
import re
from datetime import datetime
from typing import Any, Callable, Iterable, List, Optional, Sequence, Tuple

from app.agents.alza.errors import ParseError

PRODUCT_ID_RE = re.compile(r'(?:-d|/d)(\d+)\.htm', re.IGNORECASE)
PRICE_CHARS_RE = re.compile(r'[^0-9,.]')
TIMESTAMP_RE = re.compile(r'^(\d{4}-\d{2}-\d{2})T\d{2}:\d{2}(?::\d{2}(?:\.\d+)?)?(?:Z|[+-]\d{2}:?\d{2})?$')

_MISSING = object()


def extract_product_id(url: Optional[str]) -> int:
    """Product ID from a URL like ``/iphone-15-d12345.htm``; 0 when unknown."""
    if not url:
        return 0
    match = PRODUCT_ID_RE.search(url)
    if not match:
        return 0
    try:
        return int(match.group(1))
    except ValueError:
        return 0


def parse_price(raw: Optional[str]) -> float:
    """Parse a display price such as ``"1 299,90 €"`` into 1299.9."""
    if not raw:
        return 0.0
    cleaned = PRICE_CHARS_RE.sub('', raw).replace(',', '.')
    if not cleaned:
        return 0.0
    try:
        return float(cleaned)
    except ValueError:
        return 0.0


def snippet(body: Any, limit: int = 500) -> str:
    if limit <= 0:
        return ''
    if isinstance(body, bytes):
        body = body.decode('utf-8', errors='replace')
    trimmed = (body or '').strip()
    if len(trimmed) <= limit:
        return trimmed
    return trimmed[:limit] + '...'


def normalize_promo_codes(codes: Optional[Iterable[str]]) -> List[str]:
    """Split comma-joined entries, trim, drop empties, dedupe in first-seen order."""
    seen = set()
    out: List[str] = []
    for entry in codes or ():
        for raw in (entry or '').split(','):
            code = raw.strip()
            if not code or code in seen:
                continue
            seen.add(code)
            out.append(code)
    return out


def decode_json(data: bytes, what: str) -> Any:
    try:
        return json.loads(data)
    except (TypeError, ValueError) as e:
        raise ParseError(f"failed to parse {what}: {e}") from e


def decode_object(data: bytes, what: str) -> dict:
    doc = decode_json(data, what)
    if not isinstance(doc, dict):
        raise ParseError(f"failed to parse {what}: expected a JSON object")
    return doc


def dig(doc: Any, path: Sequence[str], default: Any = None) -> Any:
    """Follow ``path`` through nested dicts; ``default`` if any hop is missing."""
    current = doc
    for key in path:
        if not isinstance(current, dict) or key not in current:
            return default
        current = current[key]
    return current


def first_value(
    doc: Any,
    paths: Iterable[Tuple[str, ...]],
    accept: Callable[[Any], bool] = bool,
    default: Any = None,
) -> Any:
    """Try each path in order; first value passing ``accept`` wins."""
    for path in paths:
        value = dig(doc, path, _MISSING)
        if value is _MISSING or value is None:
            continue
        if accept(value):
            return value
    return default


def as_int(value: Any, default: int = 0) -> int:
    if isinstance(value, bool):
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def as_float(value: Any, default: float = 0.0) -> float:
    if isinstance(value, bool):
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def as_str(value: Any) -> str:
    if value is None:
        return ''
    return value if isinstance(value, str) else str(value)


def format_order_date(value: str) -> str:
    """RFC 3339 timestamp -> ``YYYY-MM-DD``; anything else passes through."""
    if not value:
        return value
    match = TIMESTAMP_RE.match(value)
    if not match:
        return value
    try:
        # Rejects impossible dates such as 2024-02-30
        datetime.strptime(match.group(1), '%Y-%m-%d')
    except ValueError:
        return value
    return match.group(1)
