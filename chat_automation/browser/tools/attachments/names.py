"""
Filename normalization and fuzzy matching.

Chat composers rename, truncate ("budget-202…xlsx") or drop the extension of
the names they render. Everything that decides "is this label the file we
uploaded" goes through `matches_name`.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass

MIN_STEM_LENGTH = 6

_WS_RE = re.compile(r"\s+")
_EXT_RE = re.compile(r"\.[a-z0-9]{1,10}$", re.IGNORECASE)
_ELLIPSIS_RE = re.compile(r"…|\.\.\.")


@dataclass(frozen=True)
class MatchResult:
    found: bool
    source: str | None = None
    text: str | None = None

    def __bool__(self) -> bool:
        return self.found


def normalize_name(value: str | None) -> str:
    return _WS_RE.sub(" ", (value or "").casefold()).strip()


def expected_basename(name: str) -> str:
    return name.replace("\\", "/").rsplit("/", 1)[-1]


def strip_extension(name: str) -> str:
    return _EXT_RE.sub("", name)


def _ellipsis_pattern(candidate: str) -> re.Pattern[str] | None:
    if not _ELLIPSIS_RE.search(candidate):
        return None
    parts = _ELLIPSIS_RE.split(candidate)
    if not any(part.strip() for part in parts):
        # A bare ellipsis placeholder names no file.
        return None
    return re.compile(".*".join(re.escape(part) for part in parts), re.DOTALL)


def matches_name(candidate: str | None, expected: str) -> bool:
    """True when `candidate` plausibly denotes the file `expected`."""
    text = normalize_name(candidate)
    if not text:
        return False
    name = normalize_name(expected_basename(expected))
    if not name:
        return False
    stem = strip_extension(name)
    stem_ok = len(stem) >= MIN_STEM_LENGTH

    if name in text:
        return True
    if stem_ok and stem in text:
        return True

    pattern = _ellipsis_pattern(text)
    if pattern is None:
        return False
    return bool(pattern.search(name)) or (stem_ok and bool(pattern.search(stem)))


def matches_input_name(raw: str | None, expected: str) -> bool:
    """File-input names are never truncated, so only containment rules apply."""
    text = normalize_name(raw)
    name = normalize_name(expected_basename(expected))
    if not text or not name:
        return False
    stem = strip_extension(name)
    return name in text or (len(stem) >= MIN_STEM_LENGTH and stem in text)


def match_any(candidates: Iterable[str], expected: str, *, source: str | None = None) -> MatchResult:
    for candidate in candidates:
        if matches_name(candidate, expected):
            return MatchResult(found=True, source=source, text=normalize_name(candidate))
    return MatchResult(found=False)


def missing_names(candidates: Iterable[str], expected_names: Iterable[str], *, input_names: bool = False) -> list[str]:
    """Expected names with no matching candidate (order preserved)."""
    pool = [c for c in candidates if c]
    check = matches_input_name if input_names else matches_name
    return [name for name in expected_names if not any(check(c, name) for c in pool)]
