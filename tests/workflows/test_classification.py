"""Tests for classification keys, categories and financial years."""

from datetime import date

import pytest

from workflows import InvalidClassification
from workflows.classification import (
    BUSINESS_CATEGORIES,
    PERSONAL_CATEGORIES,
    ClassificationKey,
    categories_for,
    current_financial_year_start,
    financial_year_choices,
    financial_year_label,
    is_valid_financial_year,
    month_name,
    provisioning_years,
    validate_classification,
)


class TestFinancialYear:
    """Indian financial year: 1 April to 31 March."""

    def test_label(self):
        assert financial_year_label(2024) == "2024-25"
        assert financial_year_label(1999) == "1999-00"

    def test_rollover_in_april(self):
        assert current_financial_year_start(date(2025, 3, 31)) == 2024
        assert current_financial_year_start(date(2025, 4, 1)) == 2025

    def test_provisioning_years(self):
        assert provisioning_years(date(2024, 7, 15)) == ["2024-25", "2025-26"]
        assert provisioning_years(date(2025, 1, 10)) == ["2024-25", "2025-26"]

    def test_choices_most_recent_first(self):
        choices = financial_year_choices(since=2020, today=date(2024, 5, 1))
        assert choices == ["2025-26", "2024-25", "2023-24", "2022-23", "2021-22", "2020-21"]

    def test_choices_default_start(self):
        choices = financial_year_choices(today=date(2024, 5, 1))
        assert choices[-1] == "1950-51"

    @pytest.mark.parametrize("value,valid", [
        ("2024-25", True),
        ("1999-00", True),
        ("2024-26", False),
        ("2024", False),
        ("24-25", False),
        ("2024/25", False),
    ])
    def test_format(self, value, valid):
        assert is_valid_financial_year(value) is valid


class TestCategories:

    def test_business_list(self):
        assert len(BUSINESS_CATEGORIES) == 9
        assert categories_for("business") == BUSINESS_CATEGORIES

    def test_personal_list(self):
        assert len(PERSONAL_CATEGORIES) == 8
        assert "Medical Records" in categories_for("personal")

    def test_unknown_type_uses_union(self):
        allowed = categories_for(None)
        assert "GST" in allowed and "Medical Records" in allowed
        assert allowed.count("Income Tax") == 1

    def test_invalid_type(self):
        with pytest.raises(InvalidClassification):
            categories_for("charity")

    def test_month_name(self):
        assert month_name(3) == "March"
        with pytest.raises(ValueError):
            month_name(13)


class TestClassificationKey:

    def test_from_fields_blanks(self):
        key = ClassificationKey.from_fields("  Acme Ltd ", "", "  ", "")
        assert key == ClassificationKey("Acme Ltd")

    def test_from_fields_month_string(self):
        assert ClassificationKey.from_fields("Acme", "GST", "2024-25", "3").month == 3

    def test_from_fields_bad_month(self):
        with pytest.raises(InvalidClassification):
            ClassificationKey.from_fields("Acme", "GST", "2024-25", "March")


class TestValidate:
    """validate_classification runs before any storage access."""

    def test_valid(self):
        key = validate_classification(ClassificationKey(" Acme Ltd ", "GST", "2024-25", 3),
                                      "business")
        assert key.entity_name == "Acme Ltd"

    def test_entity_required(self):
        with pytest.raises(InvalidClassification) as exc_info:
            validate_classification(ClassificationKey("   "))
        assert exc_info.value.kind == "invalid_classification"

    def test_entity_no_slash(self):
        with pytest.raises(InvalidClassification):
            validate_classification(ClassificationKey("Acme/Ltd"))

    @pytest.mark.parametrize("name", [".", "..", " .. "])
    def test_entity_not_a_relative_dir(self, name):
        with pytest.raises(InvalidClassification):
            validate_classification(ClassificationKey(name, "Others"))

    def test_entity_missing(self):
        with pytest.raises(InvalidClassification):
            validate_classification(ClassificationKey(None, "GST", "2024-25", 3))

    def test_unknown_category(self):
        with pytest.raises(InvalidClassification):
            validate_classification(ClassificationKey("Acme", "Payroll"))

    def test_category_checked_against_entity_type(self):
        with pytest.raises(InvalidClassification):
            validate_classification(ClassificationKey("Jane", "GST"), "personal")

    def test_bad_financial_year(self):
        with pytest.raises(InvalidClassification):
            validate_classification(ClassificationKey("Acme", "GST", "FY24"))

    @pytest.mark.parametrize("month", [0, 13, True])
    def test_bad_month(self, month):
        with pytest.raises(InvalidClassification):
            validate_classification(ClassificationKey("Acme", "GST", "2024-25", month))
