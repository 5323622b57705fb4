from __future__ import annotations

from typing import Iterable, List


_BARS = " .:-=+*#%@"


def progress_bar(percentage: float, width: int = 20) -> str:
    if width <= 0:
        return ""
    pct = max(0.0, min(100.0, float(percentage or 0.0)))
    filled = int(round(pct / 100.0 * width))
    return "[" + "#" * filled + "." * (width - filled) + "]"


def score_strip(values: Iterable[float], lo: float = 0.0, hi: float = 10.0) -> str:
    """One character per value on a fixed scale, so strips from different
    inspections can be compared side by side."""
    out_chars: List[str] = []
    rng = hi - lo
    for v in values:
        if rng <= 0:
            out_chars.append(_BARS[0])
            continue
        norm = (min(max(float(v), lo), hi) - lo) / rng
        idx = int(round(norm * (len(_BARS) - 1)))
        out_chars.append(_BARS[max(0, min(idx, len(_BARS) - 1))])
    return "".join(out_chars)
