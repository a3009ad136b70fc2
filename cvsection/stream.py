# cvsection/stream.py
from __future__ import annotations

from typing import Dict, Iterator, Sequence, Union

from .utils import log


def _parse_number(s: str) -> Union[int, float]:
    try:
        return int(s)
    except ValueError:
        return float(s)


def stream_ascii_points(path: str, names: Sequence[str]) -> Iterator[Dict[str, Union[int, float]]]:
    """
    Yield one point per line of a whitespace-separated ASCII point file.

    Columns map to `names` in order. Blank lines and lines starting with '#'
    are skipped; lines with the wrong column count or unparsable numbers are
    logged and discarded.
    """
    discarded = 0
    with open(path, "r", encoding="utf-8") as f:
        for lineno, line in enumerate(f, 1):
            s = line.strip()
            if not s or s.startswith("#"):
                continue
            cols = s.replace(",", " ").split()
            if len(cols) != len(names):
                log.warning(f"{path}:{lineno}: expected {len(names)} columns, got {len(cols)}; skipping")
                discarded += 1
                continue
            try:
                values = [_parse_number(c) for c in cols]
            except ValueError:
                log.warning(f"{path}:{lineno}: not a number in {s!r}; skipping")
                discarded += 1
                continue
            yield dict(zip(names, values))
    if discarded > 0:
        log.info(f"Total discarded {discarded} invalid lines in {path}")
