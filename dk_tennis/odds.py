"""Odds notation helpers (American / decimal)."""

from __future__ import annotations

import math
import re
from typing import Any, Callable, Optional, Tuple

_GLYPHS = {
    "−": "-",  # minus sign
    "–": "-",
    "—": "-",
    "﹣": "-",
    "－": "-",
    "＋": "+",
    "⁺": "+",
    "﹢": "+",
}
_AMERICAN_RE = re.compile(r"^[+-]?\d+$")


def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def normalize_sign_glyphs(text: str) -> str:
    out = text
    for src, dst in _GLYPHS.items():
        out = out.replace(src, dst)
    return out


def parse_american_odds(value: Any) -> Optional[int]:
    """
    "-200" -> -200, "+150" -> 150, "EVEN" -> 100, "−110" -> -110.
    Anything unparseable yields None.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    text = normalize_sign_glyphs(str(value)).strip().replace(" ", "")
    if not text:
        return None
    if text.upper() == "EVEN":
        return 100
    if not _AMERICAN_RE.match(text):
        return None
    return int(text)


def parse_decimal_odds(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        d = float(str(value).strip())
    except (TypeError, ValueError):
        return None
    if math.isnan(d) or math.isinf(d):
        return None
    return d


def american_from_decimal(decimal: float) -> Optional[int]:
    """
    decimal >= 2.0 -> positive (2.50 -> +150)
    decimal <  2.0 -> negative (1.50 -> -200)
    """
    if decimal is None or decimal <= 1.0:
        return None
    if decimal >= 2.0:
        return _round_half_up((decimal - 1.0) * 100.0)
    return _round_half_up(-100.0 / (decimal - 1.0))


def _from_american(american: Any, decimal: Any) -> Optional[int]:
    return parse_american_odds(american)


def _from_decimal(american: Any, decimal: Any) -> Optional[int]:
    d = parse_decimal_odds(decimal)
    return american_from_decimal(d) if d is not None else None


# Resolution order for a selection's price; first non-None wins.
ODDS_STRATEGIES: Tuple[Callable[[Any, Any], Optional[int]], ...] = (_from_american, _from_decimal)


def resolve_american(american: Any, decimal: Any) -> Optional[int]:
    for strategy in ODDS_STRATEGIES:
        v = strategy(american, decimal)
        if v is not None:
            return v
    return None


def parse_line(value: Any) -> Optional[float]:
    """Spread/total line: numbers or strings like '-1.5', '−22.5', '+3'."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        f = float(value)
    else:
        text = normalize_sign_glyphs(str(value)).strip().replace(" ", "")
        if not text:
            return None
        try:
            f = float(text)
        except ValueError:
            return None
    if math.isnan(f) or math.isinf(f):
        return None
    return f
