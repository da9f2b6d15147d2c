"""Lexical patterns for freight conversations.

Every pattern works on a single utterance's text. Functions return plain
values (amounts, place names, matched phrases) and leave scoring to the
agents.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Optional

# ---------------------------------------------------------------------------
# Money
# ---------------------------------------------------------------------------

MONEY_RE = re.compile(
    r"\$\s?(\d{1,3}(?:,\d{3})+|\d+)(?:\.(\d{1,2}))?(\s?[kK]\b)?"
    r"|\b(\d{1,3}(?:,\d{3})+|\d{3,5})\s*(?:dollars|bucks)\b",
)
PER_MILE_RE = re.compile(r"^\s*(?:a|per|/)\s*mile", re.IGNORECASE)

# Amounts below this are accessorials (detention, lumper, stop pay), not linehaul
MIN_LINEHAUL_AMOUNT = 300.0


@dataclass
class MoneyMention:
    amount: float
    per_mile: bool
    text: str
    start: int
    end: int = 0


def find_money(text: str) -> list[MoneyMention]:
    mentions = []
    for m in MONEY_RE.finditer(text):
        if m.group(1):
            amount = float(m.group(1).replace(",", ""))
            if m.group(2):
                amount += float(f"0.{m.group(2)}")
            if m.group(3):
                amount *= 1000
        else:
            amount = float(m.group(4).replace(",", ""))
        per_mile = bool(PER_MILE_RE.match(text[m.end():]))
        mentions.append(MoneyMention(amount, per_mile, m.group(0).strip(), m.start(), m.end()))
    return mentions


def linehaul_amounts(text: str) -> list[MoneyMention]:
    """Money mentions that look like a load rate rather than an accessorial."""
    claimed = {a.money.start for a in find_accessorials(text) if a.money is not None}
    return [
        m for m in find_money(text)
        if (m.per_mile or m.amount >= MIN_LINEHAUL_AMOUNT) and m.start not in claimed
    ]


# ---------------------------------------------------------------------------
# Accessorial charges
# ---------------------------------------------------------------------------

ACCESSORIAL_PATTERNS = [
    ("detention", re.compile(r"\bdetention\b", re.IGNORECASE)),
    ("lumper", re.compile(r"\blumper\b", re.IGNORECASE)),
    ("tonu", re.compile(r"\b(?:tonu|truck order not used)\b", re.IGNORECASE)),
    ("layover", re.compile(r"\blayover\b", re.IGNORECASE)),
    ("stop_off", re.compile(r"\b(?:stop[\s-]?off|extra stop|stop pay)\b", re.IGNORECASE)),
    ("driver_assist", re.compile(r"\bdriver (?:assist|unload)\b", re.IGNORECASE)),
    ("tarp", re.compile(r"\btarp (?:pay|fee)\b", re.IGNORECASE)),
]
# Charges that can run as high as a short linehaul
ACCESSORIAL_CAPS = {"tonu": 750.0, "layover": 750.0}
ACCESSORIAL_WINDOW = 30
PER_HOUR_RE = re.compile(r"^\s*(?:an|a|per|/)\s*(?:hour|hr)\b", re.IGNORECASE)
PER_DAY_RE = re.compile(r"^\s*(?:a|per|/)\s*(?:day|night)\b", re.IGNORECASE)


@dataclass
class AccessorialMention:
    charge_type: str
    money: Optional[MoneyMention]
    unit: str  # "flat", "per_hour", "per_day"
    text: str


def find_accessorials(text: str) -> list[AccessorialMention]:
    """Accessorial keywords with the amount said next to them, if any.

    An amount counts when it follows the keyword closely, or precedes it
    closely and is too small to be a linehaul rate.
    """
    money = [m for m in find_money(text) if not m.per_mile]
    found = []
    used: set[int] = set()
    for charge_type, pattern in ACCESSORIAL_PATTERNS:
        cap = ACCESSORIAL_CAPS.get(charge_type, MIN_LINEHAUL_AMOUNT)
        for m in pattern.finditer(text):
            after = [
                x for x in money
                if x.start not in used and 0 <= x.start - m.end() <= ACCESSORIAL_WINDOW and x.amount < cap
            ]
            before = [
                x for x in money
                if x.start not in used and 0 <= m.start() - x.end <= ACCESSORIAL_WINDOW
                and x.amount < MIN_LINEHAUL_AMOUNT
            ]
            if after:
                mention = after[0]
            elif before:
                mention = before[-1]
            else:
                mention = None
            unit = "flat"
            if mention is not None:
                used.add(mention.start)
                rest = text[mention.end:]
                if PER_HOUR_RE.match(rest):
                    unit = "per_hour"
                elif PER_DAY_RE.match(rest):
                    unit = "per_day"
            found.append(AccessorialMention(charge_type, mention, unit, m.group(0)))
    return found


# ---------------------------------------------------------------------------
# Places and lanes
# ---------------------------------------------------------------------------

_PLACE = r"[A-Z][a-z]+(?:\s[A-Z][a-z]+){0,2}"
LANE_RE = re.compile(
    rf"\b({_PLACE})(?:,?\s([A-Z]{{2}}))?\s+to\s+({_PLACE})(?:,?\s([A-Z]{{2}}))?\b"
)

NON_PLACE_WORDS = {
    "I", "It", "Its", "Going", "Yes", "Yeah", "Okay", "Ok", "Sure", "Hey", "Hi",
    "Hello", "The", "That", "This", "Then", "Just", "Want", "Need", "Got", "Also", "Now",
    "Good", "Great", "Perfect", "Deal", "Thanks", "Well", "So", "And", "But",
    "Back", "Down", "Up", "Over", "Send", "Talk", "Pickup", "Delivery",
    "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday",
    "Today", "Tomorrow", "Tonight", "January", "February", "March", "April",
    "May", "June", "July", "August", "September", "October", "November", "December",
}


@dataclass
class Lane:
    origin: str
    destination: str
    origin_state: Optional[str]
    destination_state: Optional[str]
    text: str

    @property
    def key(self) -> tuple[str, str]:
        return (self.origin.lower(), self.destination.lower())


def _clean_place(name: str) -> str:
    words = name.split()
    while words and words[0] in NON_PLACE_WORDS:
        words.pop(0)
    while words and words[-1] in NON_PLACE_WORDS:
        words.pop()
    return " ".join(words)


def find_lanes(text: str) -> list[Lane]:
    lanes = []
    for m in LANE_RE.finditer(text):
        origin = _clean_place(m.group(1))
        destination = _clean_place(m.group(3))
        if not origin or not destination or origin == destination:
            continue
        lanes.append(Lane(origin, destination, m.group(2), m.group(4), m.group(0)))
    return lanes


ORIGIN_RE = re.compile(
    rf"\b(?:[Pp]ick(?:ing)?\s?up|[Pp]ickup|[Ll]oads|[Ss]hips|[Ss]hipping)\s+(?:in|at|from|out of)\s+({_PLACE})"
)
DESTINATION_RE = re.compile(
    rf"\b(?:[Dd]eliver(?:ing|s|y)?|[Gg]oing|[Hh]eaded|[Dd]rop(?:ping)?(?: off)?)\s+(?:to|in|at|into)\s+({_PLACE})"
)


def find_place(pattern: re.Pattern, text: str) -> Optional[tuple[str, str]]:
    for m in pattern.finditer(text):
        place = _clean_place(m.group(1))
        if place:
            return place, m.group(0)
    return None


# ---------------------------------------------------------------------------
# Multi-load markers
# ---------------------------------------------------------------------------

ORDINAL_RE = re.compile(
    r"\b(first|second|third|fourth|fifth)\s+(?:one|load|shipment|lane|order|is)\b"
    r"|\bthe\s+(second|third|fourth|fifth)\b",
    re.IGNORECASE,
)
LOAD_COUNT_RE = re.compile(
    r"\b(two|three|four|five|six|\d+)\s+(?:different\s+|separate\s+)?(?:loads|shipments)\b",
    re.IGNORECASE,
)
NUMBER_WORDS = {"two": 2, "three": 3, "four": 4, "five": 5, "six": 6}


def find_ordinals(text: str) -> set[str]:
    return {(m.group(1) or m.group(2)).lower() for m in ORDINAL_RE.finditer(text)}


def find_load_count(text: str) -> int:
    counts = []
    for m in LOAD_COUNT_RE.finditer(text):
        word = m.group(1).lower()
        counts.append(int(word) if word.isdigit() else NUMBER_WORDS[word])
    return max(counts, default=0)


# ---------------------------------------------------------------------------
# Load attributes
# ---------------------------------------------------------------------------

WEIGHT_RE = re.compile(r"\b(\d{1,3}(?:,\d{3})+|\d+)\s*(?:lbs?|pounds)\b", re.IGNORECASE)
TONS_RE = re.compile(r"\b(\d+(?:\.\d+)?)\s*tons?\b", re.IGNORECASE)
PALLETS_RE = re.compile(r"\b(\d+)\s+pallets?\b", re.IGNORECASE)
MILES_RE = re.compile(r"\b(\d{1,3}(?:,\d{3})+|\d+)\s*(?:loaded\s+)?miles\b", re.IGNORECASE)

_COMMODITY = r"([a-z][a-z ]{2,30}?)"
_COMMODITY_END = (
    r"(?=[,.?!]|\s+(?:about|around|weighing|from|going|to|out|that|for|in|on|"
    r"picking|delivering|headed|needs?)\b|$)"
)
COMMODITY_PATTERNS = [
    re.compile(rf"\bpallets?\s+of\s+{_COMMODITY}{_COMMODITY_END}", re.IGNORECASE),
    re.compile(rf"\b(?:lbs?|pounds|tons?)\s+of\s+{_COMMODITY}{_COMMODITY_END}", re.IGNORECASE),
    re.compile(rf"\b(?:shipment|(?:truck)?load)\s+of\s+{_COMMODITY}{_COMMODITY_END}", re.IGNORECASE),
    re.compile(r"\bcommodity\s+is\s+([a-z][a-z ]{2,30}?)(?=[,.?!]|$)", re.IGNORECASE),
    re.compile(r"\bit'?s\s+([a-z][a-z ]{2,30}?),\s+(?:about\s+)?\d", re.IGNORECASE),
]

# Someone asking for a truck rather than offering one
EQUIPMENT_REQUEST_RE = re.compile(
    r"\b(?:i|we)(?:\s+need|\s+want|\s+are looking for|'re looking for)\s+(?:a |an )?"
    r"(?:truck|carrier|reefer|flatbed|van|dry van|step deck)\b"
    r"|\bneed (?:a |an )?(?:truck|carrier|reefer|flatbed|van) (?:for|to)\b",
    re.IGNORECASE,
)

EQUIPMENT_PATTERNS = [
    ("reefer", re.compile(r"\b(?:reefer|refrigerated)\b", re.IGNORECASE)),
    ("flatbed", re.compile(r"\bflat\s?bed\b", re.IGNORECASE)),
    ("step_deck", re.compile(r"\bstep\s?deck\b", re.IGNORECASE)),
    ("rgn", re.compile(r"\b(?:rgn|lowboy)\b", re.IGNORECASE)),
    ("conestoga", re.compile(r"\bconestoga\b", re.IGNORECASE)),
    ("power_only", re.compile(r"\bpower\s+only\b", re.IGNORECASE)),
    ("box_truck", re.compile(r"\bbox\s+truck\b", re.IGNORECASE)),
    ("dry_van", re.compile(r"\b(?:dry\s+)?van\b", re.IGNORECASE)),
]

SPECIAL_REQUIREMENTS = [
    ("hazmat", re.compile(r"\bhaz(?:mat|ardous)\b", re.IGNORECASE)),
    ("tarps", re.compile(r"\btarps?\b", re.IGNORECASE)),
    ("team", re.compile(r"\bteam\s+(?:drivers?|run|service)\b", re.IGNORECASE)),
    ("temperature_controlled", re.compile(r"\b(?:temp(?:erature)?[\s-]controlled|keep it at \d+)\b", re.IGNORECASE)),
    ("liftgate", re.compile(r"\blift\s?gate\b", re.IGNORECASE)),
    ("straps", re.compile(r"\bstraps\b", re.IGNORECASE)),
    ("appointment", re.compile(r"\bappointment\b", re.IGNORECASE)),
]

_DAY = r"today|tonight|tomorrow(?:\s+(?:morning|afternoon|evening))?|monday|tuesday|wednesday|thursday|friday|saturday|sunday"
_TIME = r"\d{1,2}(?::\d{2})?\s*(?:am|pm|a\.m\.|p\.m\.)"
PICKUP_RE = re.compile(
    rf"\b(?:pick(?:ing)?\s*up|pickup)\b[^.?!]*?\b({_DAY})\b(?:[^.?!]*?\b({_TIME}))?"
    rf"|\b({_DAY})\s+pickup\b",
    re.IGNORECASE,
)
DELIVERY_RE = re.compile(
    rf"\bdeliver(?:y|s|ed)?\b[^.?!]*?\b({_DAY})\b(?:[^.?!]*?\b({_TIME}))?"
    rf"|\b({_DAY})\s+delivery\b",
    re.IGNORECASE,
)


def parse_number(text: str) -> float:
    return float(text.replace(",", ""))


def find_weight(text: str) -> Optional[tuple[float, str]]:
    m = WEIGHT_RE.search(text)
    if m:
        return parse_number(m.group(1)), m.group(0)
    m = TONS_RE.search(text)
    if m:
        return parse_number(m.group(1)) * 2000, m.group(0)
    return None


def find_commodity(text: str) -> Optional[tuple[str, str]]:
    for pattern in COMMODITY_PATTERNS:
        m = pattern.search(text)
        if m:
            return m.group(1).strip().lower(), m.group(0)
    return None


def find_equipment(text: str) -> Optional[tuple[str, str]]:
    for name, pattern in EQUIPMENT_PATTERNS:
        m = pattern.search(text)
        if m:
            return name, m.group(0)
    return None


def find_special_requirements(text: str) -> list[str]:
    return [name for name, pattern in SPECIAL_REQUIREMENTS if pattern.search(text)]


def find_schedule(pattern: re.Pattern, text: str) -> Optional[tuple[str, str]]:
    m = pattern.search(text)
    if not m:
        return None
    day = (m.group(1) or m.group(3)).lower()
    time = m.group(2)
    value = f"{day} {time.lower()}" if time else day
    return value, m.group(0)


ISO_DATE_RE = re.compile(r"\d{4}-\d{2}-\d{2}")
WEEKDAYS = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]


def resolve_day(value: str, reference: date) -> Optional[date]:
    """Calendar date for a spoken day, counted from the call date.

    A weekday name means the next such day after the call, so "friday"
    said on a Friday is a week out. ISO dates pass through as they are.
    """
    if isinstance(reference, datetime):
        reference = reference.date()
    iso = ISO_DATE_RE.match(value.strip())
    if iso:
        try:
            return date.fromisoformat(iso.group(0))
        except ValueError:
            return None
    word = value.split()[0].lower() if value.strip() else ""
    if word in ("today", "tonight"):
        return reference
    if word == "tomorrow":
        return reference + timedelta(days=1)
    if word in WEEKDAYS:
        ahead = (WEEKDAYS.index(word) - reference.weekday()) % 7 or 7
        return reference + timedelta(days=ahead)
    return None


# ---------------------------------------------------------------------------
# Parties and identifiers
# ---------------------------------------------------------------------------

MC_RE = re.compile(r"\bMC\s*(?:number\s*)?(?:is\s*)?#?\s*(\d{5,8})\b", re.IGNORECASE)
DOT_RE = re.compile(r"\bDOT\s*(?:number\s*)?(?:is\s*)?#?\s*(\d{5,8})\b", re.IGNORECASE)
DRIVER_RE = re.compile(
    r"\b[Dd]river(?:'s name is| name is| is| will be| is going to be)\s+([A-Z][a-z]+(?:\s[A-Z][a-z]+)?)"
)
TRUCK_NUMBER_RE = re.compile(r"\btruck\s*(?:number\s*|#\s*)?(\d{2,6})\b", re.IGNORECASE)
PHONE_RE = re.compile(r"(?<!\d)(?:\(?\d{3}\)?[-.\s]?)?\d{3}[-.]\d{4}(?!\d)")
EMAIL_RE = re.compile(r"\b[\w.+-]+@[\w-]+\.[\w.-]+\b")
COMPANY_RE = re.compile(
    r"\b((?:[A-Z][A-Za-z&']+\s){1,3}(?:Logistics|Trucking|Transport|Transportation|Freight|"
    r"Carriers?|Express|Lines|Foods|Manufacturing|Distribution|Supply|Farms|Industries|Inc|LLC))\b"
)
CONTACT_NAME_RE = re.compile(r"\b(?:[Tt]his is|[Mm]y name is)\s+([A-Z][a-z]+(?:\s[A-Z][a-z]+)?)")
REFERENCE_RE = re.compile(
    r"\b(?:PO|P\.O\.|reference|ref|BOL|pro|load)\s*(?:number|#|no\.?)\s*(?:is\s*)?#?\s*([A-Z0-9-]*\d[A-Z0-9-]*)\b",
    re.IGNORECASE,
)

COMPANY_LEADING_NOISE = {"This", "With", "From", "Hey", "Hi", "Hello", "It's", "Its", "At"}


def find_company(text: str) -> Optional[str]:
    m = COMPANY_RE.search(text)
    if not m:
        return None
    words = m.group(1).split()
    while words and words[0] in COMPANY_LEADING_NOISE:
        words.pop(0)
    return " ".join(words) if len(words) > 1 else None
