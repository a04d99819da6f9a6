"""Folder path planning.

The single place that decides which folders a classification key maps to.
Pure: no storage access, so it can be called again later (e.g. when
recording metadata) and is guaranteed to give the same answer.
"""

from typing import List, Optional

from .classification import (
    MONTHLY_CATEGORIES,
    OTHERS,
    ClassificationKey,
    categories_for,
    month_name,
)
from .errors import InvalidClassification


def plan(key: ClassificationKey, entity_type: Optional[str] = None,
         strict: bool = False) -> List[str]:
    """Ordered folder names for a key, entity folder first.

    Rules:
        entity                                   always
        └── category                             if category is set
            └── financial year                   if set and category != Others
                └── month name                   if set and category is GST/TDS

    Fields whose gating condition fails are dropped silently. With
    strict=True they raise InvalidClassification instead.

    Args:
        key: Classification key (normalized here)
        entity_type: "business"/"personal"; only used for the strict category check
        strict: Reject supplied fields that would be dropped

    Returns:
        Folder names, excluding the file name
    """
    key = key.normalized()
    if not key.entity_name:
        raise InvalidClassification("Entity name is required")

    segments = [key.entity_name]

    if not key.category:
        if strict and (key.financial_year or key.month):
            raise InvalidClassification("Financial year and month need a category")
        return segments

    if strict and key.category not in categories_for(entity_type):
        raise InvalidClassification(f"Unknown category {key.category!r}")
    segments.append(key.category)

    if key.category == OTHERS or not key.financial_year:
        if strict and key.category == OTHERS and key.financial_year:
            raise InvalidClassification("'Others' documents are not filed by financial year")
        if strict and key.month:
            raise InvalidClassification("Month needs a financial year")
        return segments

    segments.append(key.financial_year)

    if key.month:
        if key.category in MONTHLY_CATEGORIES:
            try:
                segments.append(month_name(key.month))
            except ValueError:
                raise InvalidClassification(f"Month must be 1-12, got {key.month!r}")
        elif strict:
            raise InvalidClassification(f"{key.category} documents are not filed by month")

    return segments


def file_path(segments: List[str], file_name: str) -> str:
    """'/'-joined storage path, e.g. 'Acme Ltd/GST/2024-25/March/GSTR3B.pdf'."""
    return "/".join(segments + [file_name])
