"""Per-field validation and sanitization of submitted catalog forms.

Each field has an ordered rule chain. Sanitizers transform the value; checks
either pass (possibly converting it) or record a failure. Fields are evaluated
independently and the pipeline never raises for bad input: callers inspect
``ValidationResult.errors`` and decide whether to persist.
"""

import re
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

_ALPHANUMERIC_RE = re.compile(r"^[0-9A-Za-z]+$")

# YYYY, YYYY-MM, YYYY-MM-DD or YYYYMMDD, then an optional time and UTC offset
_ISO_DATE_RE = re.compile(
    r"^(?P<year>\d{4})"
    r"(?:-(?P<month>\d{2})(?:-(?P<day>\d{2}))?|(?P<basic_month>\d{2})(?P<basic_day>\d{2}))?"
    r"(?:[Tt ](?P<hour>\d{2})(?::?(?P<minute>\d{2})(?::?(?P<second>\d{2})(?:[.,]\d+)?)?)?"
    r"(?P<offset>[Zz]|[+-]\d{2}(?::?\d{2})?)?)?$"
)

# Same replacements as the usual HTML form escaping helpers
_ESCAPE_TABLE = str.maketrans({
    "&": "&amp;",
    "<": "&lt;",
    ">": "&gt;",
    '"': "&quot;",
    "'": "&#x27;",
    "/": "&#x2F;",
    "\\": "&#x5C;",
    "`": "&#96;",
})


class RuleViolation(ValueError):
    """Raised by a check when the value does not satisfy it."""


@dataclass(frozen=True)
class Rule:
    name: str
    apply: Callable[[Any], Any]
    message: Optional[str] = None

    @property
    def is_check(self) -> bool:
        return self.message is not None


@dataclass(frozen=True)
class FieldError:
    field: str
    message: str
    value: Any = None

    def to_dict(self) -> dict:
        return {"field": self.field, "msg": self.message, "value": self.value}


@dataclass
class FieldResult:
    field: str
    value: Any
    errors: List[FieldError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


@dataclass
class ValidationResult:
    values: Dict[str, Any]
    errors: List[FieldError]

    @property
    def ok(self) -> bool:
        return not self.errors

    def errors_for(self, name: str) -> List[FieldError]:
        return [e for e in self.errors if e.field == name]


# ------------------------- Sanitizers ------------------------- #
def _as_text(value: Any) -> str:
    return "" if value is None else str(value)


def trim() -> Rule:
    return Rule("trim", lambda v: _as_text(v).strip())


def escape() -> Rule:
    return Rule("escape", lambda v: _as_text(v).translate(_ESCAPE_TABLE))


def optional() -> Rule:
    """Skip the whole chain when the raw value is empty or falsy."""
    return Rule("optional", lambda v: v)


# ------------------------- Checks ------------------------- #
def required(message: str) -> Rule:
    def check(value: Any) -> Any:
        if not _as_text(value):
            raise RuleViolation(message)
        return value
    return Rule("required", check, message)


def alphanumeric(message: str) -> Rule:
    def check(value: Any) -> Any:
        if not _ALPHANUMERIC_RE.match(_as_text(value)):
            raise RuleViolation(message)
        return value
    return Rule("alphanumeric", check, message)


def _utc_offset(text: str) -> timezone:
    if text in ("Z", "z"):
        return timezone.utc
    sign = -1 if text[0] == "-" else 1
    digits = text[1:].replace(":", "")
    return timezone(sign * timedelta(hours=int(digits[:2]), minutes=int(digits[2:] or 0)))


def parse_iso_date(text: str) -> date:
    """Parse an ISO 8601 calendar date, optionally with a time of day, into a date.

    Reduced precision (``YYYY``, ``YYYY-MM``) means the first day of that period.
    A time carrying a UTC offset is converted to UTC before the date is taken.
    """
    match = _ISO_DATE_RE.match(text.strip())
    if not match:
        raise ValueError(f"not an ISO 8601 date: {text!r}")
    parts = match.groupdict()
    day = parts["day"] or parts["basic_day"]
    if parts["hour"] is not None and day is None:
        raise ValueError(f"time without a full date: {text!r}")

    value = datetime(
        int(parts["year"]),
        int(parts["month"] or parts["basic_month"] or 1),
        int(day or 1),
        int(parts["hour"] or 0),
        int(parts["minute"] or 0),
        int(parts["second"] or 0),
    )
    if parts["offset"]:
        value = value.replace(tzinfo=_utc_offset(parts["offset"])).astimezone(timezone.utc)
    return value.date()


def iso_date(message: str) -> Rule:
    def check(value: Any) -> Any:
        if isinstance(value, date):
            return value
        try:
            return parse_iso_date(_as_text(value))
        except ValueError as e:
            raise RuleViolation(message) from e
    return Rule("iso_date", check, message)


# ------------------------- Pipeline ------------------------- #
def run_chain(name: str, raw: Any, rules: Sequence[Rule]) -> FieldResult:
    """Apply ``rules`` to one field left to right."""
    if rules and rules[0].name == "optional" and not raw:
        return FieldResult(name, None)

    value = raw
    result = FieldResult(name, value)
    for rule in rules:
        if rule.name == "optional":
            continue
        if rule.is_check:
            # Once a field has failed its remaining checks are skipped
            if result.errors:
                continue
            try:
                value = rule.apply(value)
            except RuleViolation as e:
                result.errors.append(FieldError(name, str(e), value))
        else:
            value = rule.apply(value)
    result.value = value
    return result


def validate(data: Mapping[str, Any], rules: Mapping[str, Sequence[Rule]]) -> ValidationResult:
    """Run every field's chain and merge the results.

    Only fields named in ``rules`` appear in the sanitized values. Errors keep
    the order in which the fields are declared.
    """
    values: Dict[str, Any] = {}
    errors: List[FieldError] = []
    for name, chain in rules.items():
        result = run_chain(name, data.get(name), chain)
        values[name] = result.value
        errors.extend(result.errors)
    return ValidationResult(values, errors)


# ------------------------- Catalog rule sets ------------------------- #
AUTHOR_RULES: Dict[str, List[Rule]] = {
    "first_name": [
        trim(),
        required("First name must be specified."),
        escape(),
        alphanumeric("First name has non-alphanumeric characters."),
    ],
    "family_name": [
        trim(),
        required("Family name must be specified."),
        escape(),
        alphanumeric("Family name has non-alphanumeric characters."),
    ],
    "date_of_birth": [optional(), trim(), iso_date("Invalid date of birth")],
    "date_of_death": [optional(), trim(), iso_date("Invalid date of death")],
}

BOOK_RULES: Dict[str, List[Rule]] = {
    "title": [trim(), required("Title must not be empty."), escape()],
    "author": [trim(), required("Author must not be empty."), escape()],
    "summary": [trim(), required("Summary must not be empty."), escape()],
    "isbn": [trim(), required("ISBN must not be empty"), escape()],
}


def validate_author(data: Mapping[str, Any]) -> ValidationResult:
    return validate(data, AUTHOR_RULES)


def validate_book(data: Mapping[str, Any]) -> ValidationResult:
    return validate(data, BOOK_RULES)
