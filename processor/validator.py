"""Validation of mapped destination events."""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = (
    ('appId', 'Application ID'),
    ('title', 'Title'),
    ('startDate', 'Start Date'),
    ('endDate', 'End Date'),
    ('ownerOrganizerID', 'Organizer ID'),
    ('ownerOrganizerName', 'Organizer Name'),
    ('venueID', 'Venue ID'),
    ('expiresAt', 'Expiration Date'),
)

DATE_FIELDS = ('startDate', 'endDate', 'expiresAt', 'discoveredFirstDate', 'discoveredLastDate')

RULE_REQUIRED_FIELD = 'required_field'
RULE_DATE_FORMAT = 'date_format'
RULE_DATE_ORDER = 'date_order'
RULE_CATEGORY_REFERENCE = 'category_reference'


@dataclass(frozen=True)
class ValidationViolation:
    rule: str
    field: str
    message: str


@dataclass
class ValidationResult:
    violations: List[ValidationViolation] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.violations

    @property
    def errors(self) -> List[str]:
        return [violation.message for violation in self.violations]

    def has_rule(self, *rules: str) -> bool:
        return any(violation.rule in rules for violation in self.violations)


def parse_iso_date(value: Any) -> Optional[datetime]:
    """Parse an ISO 8601 date string (trailing Z allowed); None if unparseable."""
    if not isinstance(value, str) or not value:
        return None
    text = value[:-1] + '+00:00' if value.endswith('Z') else value
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def validate_event(payload: Dict[str, Any]) -> ValidationResult:
    """
    Check a destination event payload.

    Args:
        payload: Event in the destination schema (see DestinationEvent.to_payload)

    Returns:
        ValidationResult listing every violated rule
    """
    result = ValidationResult()
    title = payload.get('title')

    for field_name, label in REQUIRED_FIELDS:
        if not payload.get(field_name):
            result.violations.append(ValidationViolation(
                RULE_REQUIRED_FIELD, field_name, f"Missing required field: {label}"
            ))

    parsed = {}
    for field_name in DATE_FIELDS:
        value = payload.get(field_name)
        if not value:
            continue
        parsed[field_name] = parse_iso_date(value)
        if parsed[field_name] is None:
            result.violations.append(ValidationViolation(
                RULE_DATE_FORMAT, field_name, f"Invalid date format for field: {field_name}"
            ))

    if payload.get('categoryFirstId') and not payload.get('categoryFirst'):
        result.violations.append(ValidationViolation(
            RULE_CATEGORY_REFERENCE, 'categoryFirst', 'Category ID present but category name missing'
        ))

    start = parsed.get('startDate')
    end = parsed.get('endDate')
    if start and end:
        try:
            out_of_order = start > end
        except TypeError:
            # One side carries a timezone and the other does not
            out_of_order = False
            result.violations.append(ValidationViolation(
                RULE_DATE_FORMAT, 'startDate', 'Start and end dates mix naive and timezone-aware values'
            ))
        if out_of_order:
            result.violations.append(ValidationViolation(
                RULE_DATE_ORDER, 'startDate', 'Start date is after end date'
            ))

    for violation in result.violations:
        logger.warning(
            f"Validation failed for '{title}': {violation.message}",
            extra={'stage': 'validation'}
        )

    return result
