"""
Season code handling.

Departments spell the same selling season a dozen ways ("FA26", "Fall 26",
"26F", "26FA-BULK", "25FA/26SP"). Everything downstream keys on the canonical
two-digit-year + SP/FA code, e.g. "26FA".
"""

import re
from dataclasses import dataclass
from datetime import date
from typing import Literal

SeasonType = Literal["Main", "Bulk", "Proto"]

CANONICAL_RE = re.compile(r"^\d{2}(SP|FA)$")

# Qualifier -> season type. SMS (salesman samples) is a prototype run,
# PRODUCTION is a bulk run.
_QUALIFIERS = [
    ("BULK", "Bulk"),
    ("PROTO", "Proto"),
    ("SMS", "Proto"),
    ("PRODUCTION", "Bulk"),
]
_QUALIFIER_RE = re.compile(r"BULK|PROTO|SMS|PRODUCTION")

_PERIOD = {"F": "FA", "S": "SP", "FA": "FA", "SP": "SP"}


@dataclass(frozen=True)
class NormalizedSeason:
    season: str
    season_type: SeasonType
    raw_season: str

    @property
    def is_canonical(self) -> bool:
        return is_canonical(self.season)


def is_canonical(code: str) -> bool:
    return bool(CANONICAL_RE.match(code or ""))


def normalize_season(raw) -> NormalizedSeason:
    """
    Maps a free-form season string to its canonical code.

    Anything that matches no known pattern is returned cleaned (uppercased,
    non-alphanumerics removed) rather than dropped, so the record still lands
    in an "unknown" bucket instead of disappearing from the import.
    """
    original = "" if raw is None else str(raw)
    s = original.upper().strip()
    if not s:
        return NormalizedSeason("", "Main", original)

    # Qualifiers are matched on the cleaned text so "B.U.L.K" and "SM-S" count too
    season_type: SeasonType = "Main"
    cleaned = _clean(s)
    for qualifier, qualifier_type in _QUALIFIERS:
        if qualifier in cleaned:
            season_type = qualifier_type  # type: ignore[assignment]
            break

    # Compound seasons ("25FA/26SP") belong to the first one
    if "/" in s:
        s = s.split("/")[0]

    s = _clean(s)
    # Repeat until stable: removing one qualifier can join the halves of another
    while True:
        stripped = _QUALIFIER_RE.sub("", s)
        if stripped == s:
            break
        s = stripped

    return NormalizedSeason(_match_code(s), season_type, original)


def _clean(s: str) -> str:
    return re.sub(r"[^A-Z0-9]", "", s)


def _match_code(s: str) -> str:
    match = re.search(r"SPRING\s*(?:20)?(\d{2})", s)
    if match:
        return f"{match.group(1)}SP"
    match = re.search(r"FALL\s*(?:20)?(\d{2})", s)
    if match:
        return f"{match.group(1)}FA"

    match = re.match(r"^(FA|SP)(\d{2})$", s)
    if match:
        return f"{match.group(2)}{match.group(1)}"
    match = re.match(r"^(F|S)(\d{2})$", s)
    if match:
        return f"{match.group(2)}{_PERIOD[match.group(1)]}"
    match = re.match(r"^(\d{2})(FA|SP)$", s)
    if match:
        return s
    match = re.match(r"^(\d{2})(F|S)$", s)
    if match:
        return f"{match.group(1)}{_PERIOD[match.group(2)]}"

    return s


def season_from_filename(filename: str) -> str | None:
    """Pulls a season code out of an import file name, e.g. 'FC LL FALL 2026.xlsx' -> '26FA'."""
    if not filename:
        return None
    name = filename.upper()

    match = re.search(r"\b(SPRING|FALL)\s*(\d{4})\b", name)
    if match:
        return f"{match.group(2)[-2:]}{'SP' if match.group(1) == 'SPRING' else 'FA'}"
    match = re.search(r"\b(SPRING|FALL)\s*(\d{2})\b", name)
    if match:
        return f"{match.group(2)}{'SP' if match.group(1) == 'SPRING' else 'FA'}"
    match = re.search(r"\b(SP|FA)(\d{2})\b", name)
    if match:
        return f"{match.group(2)}{match.group(1)}"
    match = re.search(r"\b(\d{2})(SP|FA)\b", name)
    if match:
        return f"{match.group(1)}{match.group(2)}"
    match = re.search(r"\b([SF])(\d{2})\b", name)
    if match:
        return f"{match.group(2)}{_PERIOD[match.group(1)]}"
    return None


# --- Season Calendar ---
# Spring ships Feb 15 -> Aug 14, Fall ships Aug 15 -> Feb 14 of the next year.
# Pre-book opens roughly eight months ahead of shipping.


def parse_season_code(code: str) -> tuple[int, str] | None:
    match = re.match(r"^(\d{2})(SP|FA)$", (code or "").upper())
    if not match:
        return None
    return 2000 + int(match.group(1)), match.group(2)


def season_name(code: str) -> str:
    parsed = parse_season_code(code)
    if not parsed:
        return code
    year, period = parsed
    return f"{'Spring' if period == 'SP' else 'Fall'} {year}"


def ship_window(code: str) -> tuple[date, date] | None:
    parsed = parse_season_code(code)
    if not parsed:
        return None
    year, period = parsed
    if period == "SP":
        return date(year, 2, 15), date(year, 8, 14)
    return date(year, 8, 15), date(year + 1, 2, 14)


def pre_book_start(code: str) -> date | None:
    parsed = parse_season_code(code)
    if not parsed:
        return None
    year, period = parsed
    return date(year - 1, 6, 1) if period == "SP" else date(year - 1, 12, 1)


def season_status(code: str, today: date | None = None) -> str:
    """CLOSED / SHIPPING / PRE-BOOK / PLANNING relative to `today`."""
    today = today or date.today()
    window = ship_window(code)
    pre_book = pre_book_start(code)
    if not window or not pre_book:
        return "CLOSED"
    ship_start, ship_end = window
    if today > ship_end:
        return "CLOSED"
    if today >= ship_start:
        return "SHIPPING"
    if today >= pre_book:
        return "PRE-BOOK"
    return "PLANNING"


def current_shipping_season(today: date | None = None) -> str:
    today = today or date.today()
    after_feb_15 = (today.month, today.day) >= (2, 15)
    before_aug_15 = (today.month, today.day) < (8, 15)
    if after_feb_15 and before_aug_15:
        return f"{today.year % 100:02d}SP"
    # Jan 1 - Feb 14 still belongs to the previous year's fall
    year = today.year - 1 if not after_feb_15 else today.year
    return f"{year % 100:02d}FA"


def infer_status(code: str, today: date | None = None) -> str:
    """Lifecycle status used when a season has no metadata row: planning / selling / complete."""
    parsed = parse_season_code(code)
    if not parsed:
        return "planning"
    today = today or date.today()
    year, period = parsed

    if year > today.year:
        return "planning"
    if year < today.year:
        return "complete"
    if period == "FA":
        return "selling" if today.month >= 7 else "planning"
    return "selling" if today.month <= 6 else "complete"
