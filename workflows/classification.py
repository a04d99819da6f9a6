"""Classification keys, category lists and Indian financial-year helpers."""

import re
from dataclasses import dataclass, replace
from datetime import date
from typing import Dict, List, Optional, Tuple, Union

from .errors import InvalidClassification


BUSINESS = "business"
PERSONAL = "personal"
ENTITY_TYPES = (BUSINESS, PERSONAL)

BUSINESS_CATEGORIES: Tuple[str, ...] = (
    "GST", "Income Tax", "ROC", "TDS", "Accounts",
    "Bank Statements", "Agreements", "Licenses", "Others",
)
PERSONAL_CATEGORIES: Tuple[str, ...] = (
    "Identity Documents", "Income Tax", "Investments", "Bank Statements",
    "Property Documents", "Medical Records", "Educational", "Others",
)
CATEGORIES_BY_TYPE: Dict[str, Tuple[str, ...]] = {
    BUSINESS: BUSINESS_CATEGORIES,
    PERSONAL: PERSONAL_CATEGORIES,
}
ALL_CATEGORIES = tuple(dict.fromkeys(BUSINESS_CATEGORIES + PERSONAL_CATEGORIES))

# Catch-all category: never split by financial year
OTHERS = "Others"

# Categories with monthly returns
MONTHLY_CATEGORIES = ("GST", "TDS")

# Business categories that get year folders when an entity is provisioned
YEARLY_CATEGORIES = ("GST", "Income Tax", "ROC", "TDS", "Accounts")

MONTH_NAMES = (
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)

_FY_PATTERN = re.compile(r"^(\d{4})-(\d{2})$")


@dataclass(frozen=True)
class ClassificationKey:
    """Where a document belongs: entity, category, financial year, month."""

    entity_name: str
    category: Optional[str] = None
    financial_year: Optional[str] = None
    month: Optional[int] = None

    @classmethod
    def from_fields(cls, entity_name: Optional[str], category: Optional[str] = None,
                    financial_year: Optional[str] = None,
                    month: Union[int, str, None] = None) -> "ClassificationKey":
        """Build a key from loosely typed form/CLI values.

        Blank strings become None; month may be given as "3".
        """
        def blank_to_none(value: Optional[str]) -> Optional[str]:
            if value is None:
                return None
            value = value.strip()
            return value or None

        if isinstance(month, str):
            month_str = month.strip()
            if not month_str:
                month = None
            elif month_str.isdigit():
                month = int(month_str)
            else:
                raise InvalidClassification(f"Month must be a number 1-12, got {month!r}")

        return cls(
            entity_name=(entity_name or "").strip(),
            category=blank_to_none(category),
            financial_year=blank_to_none(financial_year),
            month=month,
        )

    def normalized(self) -> "ClassificationKey":
        """Copy with surrounding whitespace removed and blanks turned into None."""
        return replace(
            self,
            entity_name=(self.entity_name or "").strip(),
            category=(self.category or "").strip() or None,
            financial_year=(self.financial_year or "").strip() or None,
        )


def month_name(month: int) -> str:
    """Full English month name for 1-12."""
    if not 1 <= month <= 12:
        raise ValueError(f"Month out of range: {month}")
    return MONTH_NAMES[month - 1]


def financial_year_label(start_year: int) -> str:
    """2024 -> '2024-25'."""
    return f"{start_year}-{str(start_year + 1)[-2:]}"


def current_financial_year_start(today: Optional[date] = None) -> int:
    """Start year of the financial year containing today (FY starts 1 April)."""
    today = today or date.today()
    return today.year if today.month >= 4 else today.year - 1


def provisioning_years(today: Optional[date] = None) -> List[str]:
    """The current and next financial year, e.g. ['2024-25', '2025-26']."""
    start = current_financial_year_start(today)
    return [financial_year_label(start), financial_year_label(start + 1)]


def financial_year_choices(since: int = 1950, today: Optional[date] = None) -> List[str]:
    """Every financial year from `since` up to next year, most recent first."""
    start = current_financial_year_start(today)
    return [financial_year_label(year) for year in range(start + 1, since - 1, -1)]


def is_valid_financial_year(value: str) -> bool:
    match = _FY_PATTERN.match(value)
    if not match:
        return False
    start, end = int(match.group(1)), int(match.group(2))
    return (start + 1) % 100 == end


def categories_for(entity_type: Optional[str]) -> Tuple[str, ...]:
    """Allowed categories for an entity type (both lists if unknown)."""
    if entity_type is None:
        return ALL_CATEGORIES
    if entity_type not in CATEGORIES_BY_TYPE:
        raise InvalidClassification(
            f"Entity type must be one of {', '.join(ENTITY_TYPES)}, got {entity_type!r}"
        )
    return CATEGORIES_BY_TYPE[entity_type]


def validate_classification(key: ClassificationKey,
                            entity_type: Optional[str] = None) -> ClassificationKey:
    """Check a key before anything touches storage.

    Returns:
        The normalized key

    Raises:
        InvalidClassification: Missing entity name, unknown category,
            malformed financial year or month out of range
    """
    key = key.normalized()

    if not key.entity_name:
        raise InvalidClassification("Entity name is required")
    if "/" in key.entity_name:
        raise InvalidClassification(f"Entity name may not contain '/': {key.entity_name!r}")
    if key.entity_name in (".", ".."):
        raise InvalidClassification(f"Entity name may not be {key.entity_name!r}")

    if key.category is not None and key.category not in categories_for(entity_type):
        scope = f"{entity_type} entities" if entity_type else "any entity"
        raise InvalidClassification(f"Unknown category {key.category!r} for {scope}")

    if key.financial_year is not None and not is_valid_financial_year(key.financial_year):
        raise InvalidClassification(
            f"Financial year must look like 2024-25, got {key.financial_year!r}"
        )

    if key.month is not None:
        if isinstance(key.month, bool) or not isinstance(key.month, int) or not 1 <= key.month <= 12:
            raise InvalidClassification(f"Month must be 1-12, got {key.month!r}")

    return key
