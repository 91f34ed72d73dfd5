"""Encode/decode ``BookingExtras`` to and from a booking's free-text ``notes`` column.

Format::

    <free text>

    Dịch vụ thêm đã chọn: Kayak x2, Lunch x1
    🎁 Đơn đặt dịch vụ này sẽ được tặng kèm các dịch vụ: Welcome drink

    Thời gian bắt đầu: 08:30
    [ADDITIONAL_SERVICES:12:2,15:1]
    [COUPON_CODE:SUMMER10]
    [COMPLEMENTARY_SERVICES_IDS:3]
    ...

Every machine tag is extracted by its own rule, so one malformed or missing tag never
hides another. Decoding is best-effort and never raises. Bracketed text that is not a
known tag stays in ``free_text`` untouched.

Tag payloads and display names escape ``\\``, ``[``, ``]`` and newlines with a backslash so
arbitrary reasons and catalog names survive a round-trip; unescaped text written by older
clients decodes unchanged.
"""
import re
from datetime import date
from typing import Callable, List, Optional

from tourbook.schemas.booking import AdditionalServiceLine, BookingExtras

ADDITIONAL_SERVICES = "ADDITIONAL_SERVICES"
COUPON_CODE = "COUPON_CODE"
COMPLEMENTARY_SERVICES_IDS = "COMPLEMENTARY_SERVICES_IDS"
START_DATE = "START_DATE"
END_DATE = "END_DATE"
CANCEL_REASON_CUSTOMER = "CANCEL_REASON_CUSTOMER"
CANCEL_REASON_HOST = "CANCEL_REASON_HOST"
CANCEL_BY = "CANCEL_BY"
CANCEL_TIME = "CANCEL_TIME"
FINAL_AMOUNT = "FINAL_AMOUNT"

# Encode order; decode does not depend on it.
TAG_ORDER = (
    ADDITIONAL_SERVICES,
    COUPON_CODE,
    COMPLEMENTARY_SERVICES_IDS,
    START_DATE,
    END_DATE,
    CANCEL_REASON_CUSTOMER,
    CANCEL_REASON_HOST,
    CANCEL_BY,
    CANCEL_TIME,
    FINAL_AMOUNT,
)

ADDON_NAMES_PREFIX = "Dịch vụ thêm đã chọn: "
COMPLEMENTARY_PREFIX = "🎁 Đơn đặt dịch vụ này sẽ được tặng kèm các dịch vụ: "
START_TIME_PREFIX = "Thời gian bắt đầu: "

_PAYLOAD = r"((?:\\.|[^\]\\])+)"
_TAG_PATTERNS = {tag: re.compile(r"\n?(?<!\\)\[" + tag + ":" + _PAYLOAD + r"\]", re.DOTALL) for tag in TAG_ORDER}

_START_TIME_RE = re.compile(re.escape(START_TIME_PREFIX) + r"(\d{1,2}:\d{2})")
_COMPLEMENTARY_RE = re.compile(r"🎁 [^\n]*?tặng kèm các dịch vụ: ([^\n]+)")
_ADDON_NAMES_RE = re.compile(re.escape(ADDON_NAMES_PREFIX) + r"([^\n]+)")
_ADDON_QTY_SUFFIX_RE = re.compile(r"\s+x\d+$")
_MANY_NEWLINES_RE = re.compile(r"\n{3,}")

_ESCAPES = {"\\": "\\\\", "[": "\\[", "]": "\\]", "\n": "\\n"}
_UNESCAPE_RE = re.compile(r"\\(.)", re.DOTALL)


def _escape(value: str) -> str:
    return "".join(_ESCAPES.get(ch, ch) for ch in value)


def _unescape(payload: str) -> str:
    return _UNESCAPE_RE.sub(lambda m: "\n" if m.group(1) == "n" else m.group(1), payload)


def _split_names(line: str) -> List[str]:
    return [_unescape(n.strip()) for n in line.split(", ") if n.strip()]


def _to_int(text: str) -> Optional[int]:
    try:
        return int(text.strip())
    except (TypeError, ValueError):
        return None


def _to_date(text: str) -> Optional[date]:
    try:
        return date.fromisoformat(text.strip()[:10])
    except ValueError:
        return None


def _parse_additional_services(payload: str) -> List[AdditionalServiceLine]:
    lines = []
    for item in payload.split(","):
        id_str, _, qty_str = item.partition(":")
        sid = _to_int(id_str)
        if sid is None or sid <= 0:
            continue
        qty = _to_int(qty_str) or 1
        lines.append(AdditionalServiceLine(id=sid, quantity=max(qty, 1)))
    return lines


def _parse_ids(payload: str) -> List[int]:
    return [i for i in (_to_int(p) for p in payload.split(",")) if i is not None]


def _text(payload: str) -> Optional[str]:
    return _unescape(payload)


# tag -> (BookingExtras field, payload parser)
_TAG_RULES: dict[str, tuple[str, Callable[[str], object]]] = {
    ADDITIONAL_SERVICES: ("additional_services", _parse_additional_services),
    COUPON_CODE: ("coupon_code", _text),
    COMPLEMENTARY_SERVICES_IDS: ("complementary_service_ids", _parse_ids),
    START_DATE: ("start_date", _to_date),
    END_DATE: ("end_date", _to_date),
    CANCEL_REASON_CUSTOMER: ("cancel_reason_customer", _text),
    CANCEL_REASON_HOST: ("cancel_reason_host", _text),
    CANCEL_BY: ("cancel_by", _text),
    CANCEL_TIME: ("cancel_time", _text),
    FINAL_AMOUNT: ("final_amount_override", _to_int),
}


def _clean(text: str) -> str:
    return _MANY_NEWLINES_RE.sub("\n\n", text).strip()


def decode_extras(raw: Optional[str]) -> BookingExtras:
    if not raw:
        return BookingExtras()

    fields: dict = {}
    remainder = raw

    for tag, pattern in _TAG_PATTERNS.items():
        match = pattern.search(raw)
        if match:
            attr, parse = _TAG_RULES[tag]
            value = parse(match.group(1))
            if value is not None:
                fields[attr] = value
        remainder = pattern.sub("", remainder)

    time_match = _START_TIME_RE.search(remainder)
    if time_match:
        fields["start_time"] = time_match.group(1)
        remainder = _START_TIME_RE.sub("", remainder)

    comp_match = _COMPLEMENTARY_RE.search(remainder)
    if comp_match:
        fields["complementary_service_names"] = _split_names(comp_match.group(1))
        remainder = _COMPLEMENTARY_RE.sub("", remainder)

    addon_lines = fields.get("additional_services") or []
    names_match = _ADDON_NAMES_RE.search(remainder)
    if names_match and addon_lines:
        for line, name in zip(addon_lines, _split_names(names_match.group(1))):
            line.name = _ADDON_QTY_SUFFIX_RE.sub("", name)
        remainder = _ADDON_NAMES_RE.sub("", remainder)

    fields["free_text"] = _clean(remainder)
    return BookingExtras(**fields)


def _strip_structured(text: str, with_addons: bool) -> str:
    """Remove anything from human text that decode would read back as structure."""
    for pattern in _TAG_PATTERNS.values():
        text = pattern.sub("", text)
    for pattern in (_START_TIME_RE, _COMPLEMENTARY_RE):
        text = pattern.sub("", text)
    if with_addons:
        text = _ADDON_NAMES_RE.sub("", text)
    return _clean(text)


def _tag(tag: str, payload: str) -> str:
    return f"[{tag}:{payload}]"


def encode_extras(extras: BookingExtras) -> str:
    sections: List[str] = []
    addons = extras.additional_services

    body = _strip_structured(extras.free_text or "", with_addons=bool(addons))
    if body:
        sections.append(body)

    summary: List[str] = []
    if addons and all(a.name for a in addons):
        summary.append(ADDON_NAMES_PREFIX + ", ".join(f"{_escape(a.name)} x{a.quantity}" for a in addons))
    if extras.complementary_service_names:
        summary.append(COMPLEMENTARY_PREFIX + ", ".join(_escape(n) for n in extras.complementary_service_names))
    if summary:
        sections.append("\n".join(summary))
    if extras.start_time:
        sections.append(START_TIME_PREFIX + extras.start_time)

    tags: List[str] = []
    if addons:
        tags.append(_tag(ADDITIONAL_SERVICES, ",".join(f"{a.id}:{a.quantity}" for a in addons)))
    if extras.coupon_code:
        tags.append(_tag(COUPON_CODE, _escape(extras.coupon_code)))
    if extras.complementary_service_ids:
        tags.append(_tag(COMPLEMENTARY_SERVICES_IDS, ",".join(str(i) for i in extras.complementary_service_ids)))
    if extras.start_date:
        tags.append(_tag(START_DATE, extras.start_date.isoformat()))
    if extras.end_date:
        tags.append(_tag(END_DATE, extras.end_date.isoformat()))
    for tag, value in (
        (CANCEL_REASON_CUSTOMER, extras.cancel_reason_customer),
        (CANCEL_REASON_HOST, extras.cancel_reason_host),
        (CANCEL_BY, extras.cancel_by),
        (CANCEL_TIME, extras.cancel_time),
    ):
        if value:
            tags.append(_tag(tag, _escape(value)))
    if extras.final_amount_override is not None:
        tags.append(_tag(FINAL_AMOUNT, str(int(extras.final_amount_override))))

    text = "\n\n".join(sections)
    if tags:
        text = (text + "\n" if text else "") + "\n".join(tags)
    return text
