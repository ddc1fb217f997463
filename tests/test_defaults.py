"""Tests for the built-in document view configurations."""

from decimal import Decimal

import pytest

from factories import component, snapshot
from hrms_core.composer.defaults import DEFAULT_SECTIONS, default_config
from hrms_core.composer.engine import DocumentComposer
from hrms_core.composer.types import ComponentCategory, DocumentType


class TestDefaultConfigs:
    """Test the shape of the built-in configs."""

    @pytest.mark.parametrize("doc_type", list(DocumentType))
    def test_every_document_type_has_a_default(self, doc_type):
        config = default_config("acme", doc_type)

        assert config.document_type is doc_type
        assert config.is_active
        assert config.sections == DEFAULT_SECTIONS[doc_type]
        keys = [s.section_key for s in config.sections]
        assert len(keys) == len(set(keys))

    def test_joining_letter_salary_table(self):
        snap = snapshot(
            component("Dearness Allowance", 30000),
            component("Basic", 50000),
            component("Allowance", 20000),
            component("Bonus", 5000),
        )
        model = DocumentComposer.compose(snap, default_config("acme", DocumentType.JOINING_LETTER))
        table = model.section("salary_table")

        # Listed order, monthly only, unlisted Bonus omitted
        assert [r.name for r in table.rows] == ["Basic", "Dearness Allowance", "Allowance"]
        assert all(r.annual_amount is None for r in table.rows)
        assert table.total == Decimal("100000.00")
        assert table.total_label == "Total Gross Salary"

    def test_ctc_annexure_sections(self, full_snapshot):
        model = DocumentComposer.compose(
            full_snapshot, default_config("acme", DocumentType.CTC_ANNEXURE)
        )

        assert [s.section_key for s in model.sections] == [
            "earnings_list",
            "deductions_list",
            "contributions_list",
        ]
        contributions = model.section("contributions_list")
        assert contributions.rows[0].monthly_amount is None
        assert contributions.total_yearly == Decimal("50454.00")

    def test_payslip_sections(self, full_snapshot):
        model = DocumentComposer.compose(full_snapshot, default_config("acme", DocumentType.PAYSLIP))

        assert model.section("earnings").total == Decimal("78000.00")
        assert model.section("deductions").total == Decimal("2000.00")
        assert all(
            r.category is ComponentCategory.EMPLOYEE_DEDUCTION
            for r in model.section("deductions").rows
        )
