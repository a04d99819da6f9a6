"""Tests for plan(): the folder names a classification key maps to."""

import pytest

from workflows import InvalidClassification
from workflows.classification import ALL_CATEGORIES, MONTHLY_CATEGORIES, OTHERS, ClassificationKey
from workflows.path_planner import file_path, plan


class TestPlan:

    def test_entity_only(self):
        assert plan(ClassificationKey("Acme Ltd")) == ["Acme Ltd"]

    def test_monthly_category(self):
        key = ClassificationKey("Acme Ltd", "GST", "2024-25", 3)
        assert plan(key) == ["Acme Ltd", "GST", "2024-25", "March"]

    def test_yearly_category_ignores_month(self):
        key = ClassificationKey("Acme Ltd", "Income Tax", "2024-25", 3)
        assert plan(key) == ["Acme Ltd", "Income Tax", "2024-25"]

    def test_others_ignores_year_and_month(self):
        key = ClassificationKey("Acme Ltd", "Others", "2024-25", 3)
        assert plan(key) == ["Acme Ltd", "Others"]

    def test_month_without_year_dropped(self):
        key = ClassificationKey("Acme Ltd", "TDS", None, 6)
        assert plan(key) == ["Acme Ltd", "TDS"]

    def test_year_without_category_dropped(self):
        key = ClassificationKey("Acme Ltd", None, "2024-25", 6)
        assert plan(key) == ["Acme Ltd"]

    def test_whitespace_trimmed(self):
        key = ClassificationKey("  Acme Ltd ", " GST ", " 2024-25 ", 4)
        assert plan(key) == ["Acme Ltd", "GST", "2024-25", "April"]

    def test_deterministic(self):
        key = ClassificationKey("Acme Ltd", "TDS", "2023-24", 12)
        assert plan(key) == plan(key) == ["Acme Ltd", "TDS", "2023-24", "December"]

    def test_empty_entity_rejected(self):
        with pytest.raises(InvalidClassification):
            plan(ClassificationKey(""))

    @pytest.mark.parametrize("category", ALL_CATEGORIES)
    def test_gating_rules(self, category):
        segments = plan(ClassificationKey("E", category, "2024-25", 5))
        has_year = "2024-25" in segments
        has_month = "May" in segments
        assert has_year == (category != OTHERS)
        assert has_month == (category in MONTHLY_CATEGORIES)


class TestStrictMode:
    """strict=True rejects fields that would otherwise be dropped."""

    def test_month_on_yearly_category(self):
        with pytest.raises(InvalidClassification):
            plan(ClassificationKey("Acme", "ROC", "2024-25", 3), strict=True)

    def test_year_on_others(self):
        with pytest.raises(InvalidClassification):
            plan(ClassificationKey("Acme", "Others", "2024-25"), strict=True)

    def test_unknown_category(self):
        with pytest.raises(InvalidClassification):
            plan(ClassificationKey("Jane", "GST"), entity_type="personal", strict=True)

    def test_valid_key_passes(self):
        key = ClassificationKey("Acme", "GST", "2024-25", 3)
        assert plan(key, "business", strict=True) == plan(key)


class TestFilePath:

    def test_join(self):
        assert (file_path(["Acme Ltd", "GST", "2024-25", "March"], "GSTR3B.pdf")
                == "Acme Ltd/GST/2024-25/March/GSTR3B.pdf")
