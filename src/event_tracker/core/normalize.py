from __future__ import annotations

import re
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional

import dateparser

from .models import EventType
from .utils import coerce_datetime, leading_float, split_contacts, to_bool, to_float

TBA_MARKERS = {"tba", "tbd", "tbc", "to be announced", "to be confirmed", "to be determined"}

ORDINAL_RE = re.compile(r"(\d+)(st|nd|rd|th)\b", re.I)
DATE_SPLIT_RE = re.compile(r"[/-]")
NUMERIC_TRIPLE_RE = re.compile(r"\d+[/-]\d+[/-]\d+")
NUMBER_STRIP_RE = re.compile(r"[^0-9.\-]")
WORD_RE = re.compile(r"\w\S*")

UNKNOWN_COLLEGE = "Unknown College"
UNTITLED_EVENT = "Untitled Event"

# field -> accepted header spellings (lower-case, trimmed)
COLUMN_ALIASES: Dict[str, List[str]] = {
    "college_name": ["college name", "college", "institution", "university", "institute"],
    "event_name": ["event name", "event", "name", "title"],
    "event_type": ["event type", "type", "category"],
    "registration_deadline": ["registration deadline", "deadline", "reg deadline", "last date"],
    "start_date": ["start date", "from date", "event date", "date"],
    "end_date": ["end date", "to date", "closing date"],
    "prize_amount": ["prize", "prize amount", "prize money", "reward"],
    "registration_fee": ["fee", "registration fee", "reg fee", "entry fee", "cost"],
    "accommodation": ["accommodation", "stay", "hostel", "acm"],
    "location": ["location", "venue", "place", "city"],
    "is_online": ["online", "mode", "virtual"],
    "contact_numbers": ["contact", "phone", "mobile", "contact number", "contact numbers"],
    "contact1": ["contact - 1", "contact1", "contact 1"],
    "contact2": ["contact - 2", "contact2", "contact 2"],
    "poster_url": ["poster", "poster link", "image", "poster url", "posters"],
    "website": ["website", "url", "link", "registration link"],
    "description": ["description", "details", "about"],
    "team_size": ["team size", "team"],
    "leader": ["leader"],
    "members": ["members"],
    "no_of_teams": ["no of teams", "no. of teams"],
    "prize_won": ["price won", "prize won"],
    "eligibility": ["eligibility", "eligible", "criteria"],
    "status": ["status", "current status", "state"],
}

# The Apps Script sheet is edited by hand, so its headers are looser.
SHEET_COLUMN_ALIASES: Dict[str, List[str]] = {
    "event_name": ["eventname", "event name", "event_name", "name", "title", "event"],
    "college_name": ["collegename", "college name", "college_name", "college", "institution",
                     "university", "institute"],
    "event_type": ["eventtype", "event type", "event_type", "type", "category"],
    "registration_deadline": ["registrationdeadline", "registration deadline", "registration_deadline",
                              "deadline", "reg deadline", "last date"],
    "start_date": ["startdate", "start date", "start_date", "event date", "date", "from"],
    "end_date": ["enddate", "end date", "end_date", "to", "end"],
    "prize_amount": ["prizeamount", "prize amount", "prize_amount", "prize", "prize money",
                     "prize pool", "worth"],
    "registration_fee": ["registrationfee", "registration fee", "registration_fee", "fee", "reg fee",
                         "entry fee", "cost"],
    "accommodation": ["accommodation", "acm", "stay", "hostel"],
    "location": ["location", "venue", "place", "city", "address"],
    "is_online": ["isonline", "is_online", "online", "mode", "virtual"],
    "status": ["status", "state"],
    "priority_score": ["priorityscore", "priority score", "priority_score", "priority", "score"],
    "website": ["website", "url", "link", "web", "registration link", "reg link"],
    "description": ["description", "details", "about", "info", "notes", "discription"],
    "team_size": ["teamsize", "team size", "team_size", "team"],
    "eligibility": ["eligibility", "eligible", "criteria", "who can apply"],
    "leader": ["leader", "team leader", "lead", "captain"],
    "members": ["members", "team members", "participants"],
    "no_of_teams": ["noofteams", "no of teams", "no_of_teams", "teams", "number of teams", "team count"],
    "prize_won": ["prizewon", "prize won", "prize_won", "won", "result", "achievement", "price won"],
    "contact1": ["contact1", "contact 1", "contact-1", "phone", "phone 1", "contact"],
    "contact2": ["contact2", "contact 2", "contact-2", "phone 2"],
    "poster_url": ["posterurl", "poster url", "poster_url", "poster", "posters", "image", "image url"],
    "contact_numbers": ["contactnumbers", "contact numbers", "contacts", "phone numbers"],
    "server_id": ["serverid", "server id", "server_id"],
    "updated_at": ["updatedat", "updated at", "last updated", "modified"],
}

def _invert(aliases: Mapping[str, List[str]]) -> Dict[str, str]:
    return {alias: f for f, names in aliases.items() for alias in names}

HEADER_TO_FIELD = _invert(COLUMN_ALIASES)
SHEET_HEADER_TO_FIELD = _invert(SHEET_COLUMN_ALIASES)

def normalize_column_name(column: str) -> str:
    return str(column).lower().strip()

def find_matching_field(column: str) -> Optional[str]:
    return HEADER_TO_FIELD.get(normalize_column_name(column))

def auto_detect_mapping(headers: Iterable[str]) -> Dict[str, str]:
    """Map each recognised CSV header to its event field. Unknown headers are dropped."""
    mapping: Dict[str, str] = {}
    for header in headers:
        f = find_matching_field(header)
        if f:
            mapping[header] = f
    return mapping

def title_case(text: Any) -> str:
    if not text:
        return ""
    return WORD_RE.sub(lambda m: m.group(0)[0].upper() + m.group(0)[1:].lower(), str(text))

def _int_part(p: str) -> Optional[int]:
    # parseInt-like: leading digits only
    m = re.match(r"\s*(\d+)", p)
    if not m:
        return None
    try:
        return int(m.group(1))
    except ValueError:
        # longer than sys.get_int_max_str_digits()
        return None

def _safe_date(year: int, month: int, day: int) -> Optional[datetime]:
    try:
        return datetime(year, month, day)
    except (ValueError, OverflowError):
        return None

def _parse_numeric_triple(text: str) -> Optional[datetime]:
    parts = DATE_SPLIT_RE.split(text)
    if len(parts) != 3:
        return None
    nums = [_int_part(p) for p in parts]
    if any(n is None for n in nums):
        return None
    a, b, year = nums
    dmy = _safe_date(year, b, a)
    mdy = _safe_date(year, a, b)

    # a day component > 12 settles the order; otherwise DD/MM wins
    if dmy and a > 12:
        return dmy
    if mdy and b > 12:
        return mdy
    return dmy or mdy

def _parse_free_text(text: str) -> Optional[datetime]:
    low = text.lower()
    if any(m in low for m in TBA_MARKERS):
        return None

    # remove ordinals: "2nd May" -> "2 May"
    no_ord = ORDINAL_RE.sub(r"\1", text)
    try:
        return dateparser.parse(
            no_ord,
            settings={
                "DATE_ORDER": "DMY",
                "PREFER_DAY_OF_MONTH": "first",
                "RETURN_AS_TIMEZONE_AWARE": False,
            },
            languages=["en"],
        )
    except (ValueError, OverflowError):
        return None

def parse_date(value: Any) -> Optional[datetime]:
    """
    Parse a spreadsheet date.

    Order: native datetime/date, ISO-8601, then D/M/Y or M/D/Y numeric
    triples split on '/' or '-', then free text ("3rd May 2026").
    Returns None when nothing works.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (datetime, date)):
        return coerce_datetime(value)

    raw = " ".join(str(value).split())
    if not raw:
        return None

    iso = coerce_datetime(raw)
    if iso:
        return iso

    triple = _parse_numeric_triple(raw)
    if triple:
        return triple
    if NUMERIC_TRIPLE_RE.fullmatch(raw):
        # all digits but not a calendar date, e.g. 31/02/2026
        return None

    return _parse_free_text(raw)

def parse_bool(value: Any) -> bool:
    return to_bool(value)

def parse_number(value: Any) -> float:
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        return to_float(value)
    if value is None:
        return 0.0
    num = leading_float(NUMBER_STRIP_RE.sub("", str(value)))
    return num if num is not None else 0.0

def parse_contacts(value: Any) -> List[str]:
    return split_contacts(value)

def normalize_event_type(value: Any) -> str:
    if not value or not str(value).strip():
        return EventType.OTHER.value
    lower = str(value).lower().strip()

    for t in EventType:
        if t.value.lower() == lower:
            return t.value

    if "hack" in lower:
        return EventType.HACKATHON.value
    if "paper" in lower:
        return EventType.PAPER_PRESENTATION.value
    if "project" in lower or "expo" in lower:
        return EventType.PROJECT_EXPO.value
    if "workshop" in lower:
        return EventType.WORKSHOP.value
    if "contest" in lower or "competition" in lower:
        return EventType.CONTEST.value
    if "seminar" in lower:
        return EventType.SEMINAR.value
    if "conference" in lower:
        return EventType.CONFERENCE.value

    return title_case(str(value).strip())

def _coerce(field_name: str, value: Any) -> Any:
    if field_name in ("registration_deadline", "start_date", "end_date", "updated_at"):
        return parse_date(value)
    if field_name in ("prize_amount", "registration_fee", "priority_score"):
        return parse_number(value)
    if field_name == "team_size":
        return max(1, int(parse_number(value)))
    if field_name in ("accommodation", "is_online"):
        return parse_bool(value)
    if field_name == "contact_numbers":
        return parse_contacts(value)
    if field_name == "status":
        return title_case(str(value).strip())
    return str(value).strip()

def _apply_defaults(event: Dict[str, Any], now: datetime) -> Dict[str, Any]:
    if not event.get("college_name"):
        event["college_name"] = UNKNOWN_COLLEGE
    if not event.get("event_name"):
        event["event_name"] = UNTITLED_EVENT

    event["event_type"] = normalize_event_type(event.get("event_type"))

    if not event.get("registration_deadline"):
        event["registration_deadline"] = now
    if not event.get("start_date"):
        event["start_date"] = now
    if not event.get("end_date"):
        event["end_date"] = event["start_date"]
    return event

def transform_row(row: Mapping[str, Any], mapping: Mapping[str, str], now: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Turn one parsed CSV row into canonical event fields.

    mapping is header -> field (see auto_detect_mapping). Missing names get
    placeholder strings, unreadable dates fall back to `now` (end date to the
    start date), so the result always carries all three dates.
    """
    now = now or datetime.now()
    event: Dict[str, Any] = {}

    for column, field_name in mapping.items():
        value = row.get(column)
        if value is None:
            continue
        event[field_name] = _coerce(field_name, value)

    return _apply_defaults(event, now)

def normalize_sheet_row(raw: Mapping[str, Any], now: Optional[datetime] = None) -> Optional[Dict[str, Any]]:
    """
    Normalize one row returned by the Apps Script bridge.
    First matching header wins. Returns None for rows without a name or college.
    """
    now = now or datetime.now()
    event: Dict[str, Any] = {}

    for key, value in raw.items():
        f = SHEET_HEADER_TO_FIELD.get(normalize_column_name(key))
        if not f:
            continue
        if event.get(f) in (None, ""):
            event[f] = value

    has_name = bool(str(event.get("event_name") or "").strip())
    has_college = bool(str(event.get("college_name") or "").strip())
    if not has_name and not has_college:
        return None

    out = {f: _coerce(f, v) for f, v in event.items() if v is not None}
    for f in ("registration_deadline", "start_date", "end_date"):
        if not out.get(f):
            out[f] = now
    if not out.get("status"):
        out.pop("status", None)
    out.setdefault("event_type", EventType.OTHER.value)
    return out
