from __future__ import annotations

import re
import uuid
from dataclasses import dataclass, field, fields
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from .utils import coerce_datetime, split_contacts, to_bool, to_float

class EventStatus(str, Enum):
    OPEN = "Open"
    DEADLINE_TODAY = "Deadline Today"
    CLOSED = "Closed"
    COMPLETED = "Completed"
    ATTENDED = "Attended"
    WON = "Won"
    BLOCKED = "Blocked"

# Never overwritten by automatic recalculation
TERMINAL_STATUSES = frozenset({EventStatus.WON.value, EventStatus.BLOCKED.value})

class EventType(str, Enum):
    HACKATHON = "Hackathon"
    PAPER_PRESENTATION = "Paper Presentation"
    PROJECT_EXPO = "Project Expo"
    WORKSHOP = "Workshop"
    CONTEST = "Contest"
    SEMINAR = "Seminar"
    CONFERENCE = "Conference"
    OTHER = "Other"

# Export contract: header order must not change
EXPORT_COLUMNS: List[str] = [
    "College Name",
    "Event Name",
    "Event Type",
    "Registration Deadline",
    "Start Date",
    "End Date",
    "Prize Amount",
    "Registration Fee",
    "Accommodation",
    "Location",
    "Online",
    "Status",
    "Priority Score",
    "Website",
    "Description",
    "Team Size",
    "Eligibility",
    "Leader",
    "Members",
    "No of Teams",
    "Prize Won",
    "Contact 1",
    "Contact 2",
    "Poster URL",
    "Contact Numbers",
]

DATE_FIELDS = ("registration_deadline", "start_date", "end_date")

CAMEL_RE = re.compile(r"(?<!^)(?=[A-Z])")

def plain(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value

def snake_key(key: str) -> str:
    # "posterUrl" -> "poster_url", "noOfTeams" -> "no_of_teams"
    return CAMEL_RE.sub("_", key).lower()

def dedup_key(event_name: Any, college_name: Any) -> str:
    return f"{event_name or ''}__{college_name or ''}".lower()

def _format_number(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    # fixed notation, "1e-05" would re-import as 1
    return format(Decimal(repr(float(value))), "f")

def _format_date(value: Optional[datetime]) -> str:
    return value.isoformat() if value else ""

@dataclass
class Event:
    """
    Canonical event record shared by the store, the CSV importer and the sheets bridge.
    status and priority_score are derived by core.rules; everything else is user data.
    """
    id: Optional[int] = None
    server_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    college_name: str = ""
    event_name: str = ""
    event_type: str = EventType.OTHER.value
    registration_deadline: Optional[datetime] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    prize_amount: float = 0.0
    registration_fee: float = 0.0
    accommodation: bool = False
    location: str = ""
    is_online: bool = False
    contact_numbers: List[str] = field(default_factory=list)
    contact1: str = ""
    contact2: str = ""
    poster_url: str = ""
    website: str = ""
    description: str = ""
    team_size: int = 1
    team_name: str = ""
    leader: str = ""
    members: str = ""
    no_of_teams: str = ""
    prize_won: str = ""
    eligibility: str = ""
    status: str = EventStatus.OPEN.value
    priority_score: int = 0
    custom_reminders: List[Any] = field(default_factory=list)
    tags: List[Any] = field(default_factory=list)
    is_shortlisted: bool = False
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)

    def __post_init__(self) -> None:
        self.status = plain(self.status)
        self.event_type = plain(self.event_type)

    @property
    def key(self) -> str:
        return dedup_key(self.event_name, self.college_name)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @classmethod
    def field_names(cls) -> List[str]:
        return [f.name for f in fields(cls)]

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Event":
        """
        Build an Event from canonical field values.
        camelCase keys (as stored by the browser app and the sheet) are accepted,
        unknown keys are ignored and loosely typed values are coerced.
        """
        known = set(cls.field_names())
        kwargs: Dict[str, Any] = {}
        for k, v in data.items():
            name = k if k in known else snake_key(k)
            if name not in known or v is None:
                continue
            kwargs[name] = v
        return cls(**coerce_fields(kwargs))

    def update(self, changes: Mapping[str, Any]) -> Dict[str, Any]:
        """Apply coerced changes in place; returns the fields that actually changed."""
        known = set(self.field_names())
        clean = {}
        for k, v in changes.items():
            name = k if k in known else snake_key(k)
            if name in known and name != "id":
                clean[name] = v
        changed = {}
        for name, value in coerce_fields(clean).items():
            if getattr(self, name) != value:
                setattr(self, name, value)
                changed[name] = value
        return changed

    def to_json(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        for name in self.field_names():
            v = getattr(self, name)
            if isinstance(v, datetime):
                v = v.isoformat()
            elif isinstance(v, list):
                v = list(v)
            out[name] = plain(v)
        return out

    def to_row(self) -> Dict[str, str]:
        # CSV-friendly, keyed by EXPORT_COLUMNS
        return {
            "College Name": self.college_name,
            "Event Name": self.event_name,
            "Event Type": self.event_type,
            "Registration Deadline": _format_date(self.registration_deadline),
            "Start Date": _format_date(self.start_date),
            "End Date": _format_date(self.end_date),
            "Prize Amount": _format_number(self.prize_amount),
            "Registration Fee": _format_number(self.registration_fee),
            "Accommodation": "Yes" if self.accommodation else "No",
            "Location": self.location,
            "Online": "Yes" if self.is_online else "No",
            "Status": self.status,
            "Priority Score": str(self.priority_score),
            "Website": self.website,
            "Description": self.description,
            "Team Size": str(self.team_size),
            "Eligibility": self.eligibility,
            "Leader": self.leader,
            "Members": self.members,
            "No of Teams": self.no_of_teams,
            "Prize Won": self.prize_won,
            "Contact 1": self.contact1,
            "Contact 2": self.contact2,
            "Poster URL": self.poster_url,
            "Contact Numbers": "; ".join(self.contact_numbers),
        }

def coerce_fields(values: Mapping[str, Any]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for name, v in values.items():
        if name in DATE_FIELDS or name in ("created_at", "updated_at"):
            out[name] = coerce_datetime(v)
            if out[name] is None and name in ("created_at", "updated_at"):
                out[name] = datetime.now()
        elif name in ("prize_amount", "registration_fee"):
            out[name] = to_float(v)
        elif name == "team_size":
            out[name] = max(1, int(to_float(v)))
        elif name == "priority_score":
            out[name] = min(100, max(0, int(to_float(v))))
        elif name in ("accommodation", "is_online", "is_shortlisted"):
            out[name] = to_bool(v)
        elif name == "contact_numbers":
            out[name] = split_contacts(v)
        elif name in ("tags", "custom_reminders"):
            out[name] = list(v) if isinstance(v, (list, tuple)) else []
        elif name == "id":
            out[name] = int(v) if isinstance(v, int) or str(v).isdigit() else None
        elif name in ("status", "event_type"):
            out[name] = str(plain(v)).strip()
        else:
            out[name] = "" if v is None else str(plain(v))
    return out
