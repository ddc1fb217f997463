"""Built-in document view configurations.

Used when a tenant has no active configuration for a document type, and as
the seed set installed by ``ViewConfigService.seed_defaults``.
"""

from __future__ import annotations

from hrms_core.composer.types import (
    Columns,
    DataSource,
    DocumentType,
    DocumentViewConfig,
    FilterMode,
    Section,
)

MONTHLY_ONLY = Columns(monthly=True, yearly=False)
YEARLY_ONLY = Columns(monthly=False, yearly=True)
BOTH = Columns(monthly=True, yearly=True)

DEFAULT_SECTIONS: dict[DocumentType, tuple[Section, ...]] = {
    DocumentType.JOINING_LETTER: (
        Section(
            section_key="salary_table",
            data_source=DataSource.EARNINGS,
            mode=FilterMode.INCLUDE_SPECIFIC,
            components=(
                "Basic",
                "Basic Salary",
                "HRA",
                "Dearness Allowance",
                "Special Allowance",
                "Allowance",
            ),
            columns=MONTHLY_ONLY,
            show_total=True,
            total_label="Total Gross Salary",
            title="Salary Details",
        ),
    ),
    DocumentType.OFFER_LETTER: (
        Section(
            section_key="earnings_list",
            data_source=DataSource.EARNINGS,
            columns=BOTH,
            total_label="Gross Salary (A)",
        ),
        Section(
            section_key="contributions_list",
            data_source=DataSource.EMPLOYER_CONTRIBUTIONS,
            columns=BOTH,
            total_label="Employer Contributions (B)",
        ),
    ),
    DocumentType.CTC_ANNEXURE: (
        Section(
            section_key="earnings_list",
            data_source=DataSource.EARNINGS,
            columns=BOTH,
            total_label="Total Earnings (A)",
        ),
        Section(
            section_key="deductions_list",
            data_source=DataSource.EMPLOYEE_DEDUCTIONS,
            columns=BOTH,
            total_label="Total Deductions (B)",
        ),
        Section(
            section_key="contributions_list",
            data_source=DataSource.EMPLOYER_CONTRIBUTIONS,
            columns=YEARLY_ONLY,
            total_label="Employer Contributions (C)",
        ),
    ),
    DocumentType.PAYSLIP: (
        Section(
            section_key="earnings",
            data_source=DataSource.EARNINGS,
            columns=MONTHLY_ONLY,
            total_label="Total Earnings",
        ),
        Section(
            section_key="deductions",
            data_source=DataSource.EMPLOYEE_DEDUCTIONS,
            columns=MONTHLY_ONLY,
            total_label="Total Deductions",
        ),
    ),
}


def default_config(tenant_id: str, document_type: DocumentType) -> DocumentViewConfig:
    """The built-in configuration for a document type."""
    return DocumentViewConfig(
        tenant_id=tenant_id,
        document_type=document_type,
        sections=DEFAULT_SECTIONS[document_type],
        is_active=True,
    )
