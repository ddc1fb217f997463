"""Type definitions for salary snapshots, view configs and render models."""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from hrms_core.composer.money import ZERO, format_inr, round_to_cents, sum_amounts, to_decimal


class DocumentType(str, Enum):
    """Documents that can be composed from a salary snapshot."""

    JOINING_LETTER = "JOINING_LETTER"
    OFFER_LETTER = "OFFER_LETTER"
    CTC_ANNEXURE = "CTC_ANNEXURE"
    PAYSLIP = "PAYSLIP"


class ComponentCategory(str, Enum):
    """Which side of the salary structure a component belongs to."""

    EARNING = "earning"
    EMPLOYEE_DEDUCTION = "employeeDeduction"
    EMPLOYER_CONTRIBUTION = "employerContribution"


class CalculationType(str, Enum):
    FIXED = "FIXED"
    PERCENT_OF_BASIC = "PERCENT_OF_BASIC"
    PERCENT_OF_CTC = "PERCENT_OF_CTC"


class DataSource(str, Enum):
    """Snapshot slice a view section draws its rows from."""

    EARNINGS = "earnings"
    EMPLOYEE_DEDUCTIONS = "employeeDeductions"
    EMPLOYER_CONTRIBUTIONS = "employerContributions"
    ALL = "all"

    @property
    def categories(self) -> tuple[ComponentCategory, ...]:
        if self is DataSource.ALL:
            return CATEGORY_ORDER
        return (_SOURCE_CATEGORY[self],)

    @property
    def default_title(self) -> str:
        return _SOURCE_TITLE[self]


class FilterMode(str, Enum):
    INCLUDE_ALL = "INCLUDE_ALL"
    INCLUDE_SPECIFIC = "INCLUDE_SPECIFIC"
    EXCLUDE_SPECIFIC = "EXCLUDE_SPECIFIC"


class SubjectType(str, Enum):
    EMPLOYEE = "employee"
    CANDIDATE = "candidate"


class SnapshotReason(str, Enum):
    """Event that produced a salary snapshot."""

    JOINING = "JOINING"
    INCREMENT = "INCREMENT"
    REVISION = "REVISION"
    PROMOTION = "PROMOTION"
    MANUAL = "MANUAL"
    CORRECTION = "CORRECTION"


CATEGORY_ORDER = (
    ComponentCategory.EARNING,
    ComponentCategory.EMPLOYEE_DEDUCTION,
    ComponentCategory.EMPLOYER_CONTRIBUTION,
)

_SOURCE_CATEGORY = {
    DataSource.EARNINGS: ComponentCategory.EARNING,
    DataSource.EMPLOYEE_DEDUCTIONS: ComponentCategory.EMPLOYEE_DEDUCTION,
    DataSource.EMPLOYER_CONTRIBUTIONS: ComponentCategory.EMPLOYER_CONTRIBUTION,
}

_SOURCE_TITLE = {
    DataSource.EARNINGS: "Earnings",
    DataSource.EMPLOYEE_DEDUCTIONS: "Deductions",
    DataSource.EMPLOYER_CONTRIBUTIONS: "Employer Contributions",
    DataSource.ALL: "Salary Components",
}


def _opt_str(value: Any) -> str | None:
    return str(value) if value is not None else None


def _opt_decimal(value: Any) -> Decimal | None:
    return to_decimal(value) if value is not None else None


# ---------------------------------------------------------------------------
# Snapshot side
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SalaryComponent:
    """One resolved monetary line of a salary structure."""

    name: str
    monthly_amount: Decimal
    annual_amount: Decimal
    category: ComponentCategory = ComponentCategory.EARNING
    calculation_type: CalculationType = CalculationType.FIXED
    percentage: Decimal | None = None
    pro_rata: bool = False
    taxable: bool = True
    removable: bool = True
    code: str | None = None

    @classmethod
    def derive(
        cls,
        name: str,
        monthly_amount: Decimal,
        category: ComponentCategory = ComponentCategory.EARNING,
        **kwargs: Any,
    ) -> SalaryComponent:
        """Build a component, deriving the annual amount from the monthly one."""
        monthly = round_to_cents(to_decimal(monthly_amount))
        return cls(
            name=name,
            monthly_amount=monthly,
            annual_amount=round_to_cents(monthly * 12),
            category=category,
            **kwargs,
        )

    @property
    def identity(self) -> tuple[ComponentCategory, str]:
        """Category plus normalized name; unique within a snapshot."""
        return (self.category, normalize_name(self.name))

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "code": self.code,
            "category": self.category.value,
            "calculation_type": self.calculation_type.value,
            "percentage": _opt_str(self.percentage),
            "monthly_amount": str(self.monthly_amount),
            "annual_amount": str(self.annual_amount),
            "pro_rata": self.pro_rata,
            "taxable": self.taxable,
            "removable": self.removable,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SalaryComponent:
        """Rebuild a component from its stored form (no re-derivation)."""
        return cls(
            name=data["name"],
            monthly_amount=to_decimal(data["monthly_amount"]),
            annual_amount=to_decimal(data["annual_amount"]),
            category=ComponentCategory(data["category"]),
            calculation_type=CalculationType(data.get("calculation_type", "FIXED")),
            percentage=_opt_decimal(data.get("percentage")),
            pro_rata=bool(data.get("pro_rata", False)),
            taxable=bool(data.get("taxable", True)),
            removable=bool(data.get("removable", True)),
            code=data.get("code"),
        )


def normalize_name(name: str) -> str:
    """Matching key for component names: trimmed and case-folded."""
    return name.strip().casefold()


@dataclass(frozen=True)
class SalaryBreakdown:
    """Snapshot-level totals, derived once from the components."""

    gross_monthly: Decimal
    gross_yearly: Decimal
    deductions_monthly: Decimal
    deductions_yearly: Decimal
    employer_monthly: Decimal
    employer_yearly: Decimal
    take_home_monthly: Decimal
    ctc_monthly: Decimal
    ctc_yearly: Decimal

    @classmethod
    def from_components(
        cls, components: tuple[SalaryComponent, ...], annual_ctc: Decimal | None = None
    ) -> SalaryBreakdown:
        def total(category: ComponentCategory, attr: str) -> Decimal:
            return sum_amounts(
                [getattr(c, attr) for c in components if c.category is category]
            )

        gross_m = total(ComponentCategory.EARNING, "monthly_amount")
        gross_y = total(ComponentCategory.EARNING, "annual_amount")
        ded_m = total(ComponentCategory.EMPLOYEE_DEDUCTION, "monthly_amount")
        ded_y = total(ComponentCategory.EMPLOYEE_DEDUCTION, "annual_amount")
        emp_m = total(ComponentCategory.EMPLOYER_CONTRIBUTION, "monthly_amount")
        emp_y = total(ComponentCategory.EMPLOYER_CONTRIBUTION, "annual_amount")

        if annual_ctc is not None:
            ctc_y = round_to_cents(annual_ctc)
            ctc_m = round_to_cents(annual_ctc / 12)
        else:
            ctc_y = round_to_cents(gross_y + emp_y)
            ctc_m = round_to_cents(gross_m + emp_m)

        return cls(
            gross_monthly=gross_m,
            gross_yearly=gross_y,
            deductions_monthly=ded_m,
            deductions_yearly=ded_y,
            employer_monthly=emp_m,
            employer_yearly=emp_y,
            take_home_monthly=round_to_cents(gross_m - ded_m),
            ctc_monthly=ctc_m,
            ctc_yearly=ctc_y,
        )

    def to_dict(self) -> dict[str, str]:
        return {name: str(getattr(self, name)) for name in self.__dataclass_fields__}


@dataclass(frozen=True)
class SalarySnapshot:
    """Immutable, versioned salary structure of one subject."""

    subject_id: str
    version: int
    components: tuple[SalaryComponent, ...]
    subject_type: SubjectType = SubjectType.EMPLOYEE
    reason: SnapshotReason = SnapshotReason.MANUAL
    annual_ctc: Decimal | None = None
    defaults_applied: bool = False
    effective_from: date | None = None
    snapshot_id: UUID | None = None
    created_at: datetime | None = None
    created_by: str | None = None
    notes: str | None = None

    def by_category(self, category: ComponentCategory) -> tuple[SalaryComponent, ...]:
        return tuple(c for c in self.components if c.category is category)

    @property
    def earnings(self) -> tuple[SalaryComponent, ...]:
        return self.by_category(ComponentCategory.EARNING)

    @property
    def employee_deductions(self) -> tuple[SalaryComponent, ...]:
        return self.by_category(ComponentCategory.EMPLOYEE_DEDUCTION)

    @property
    def employer_contributions(self) -> tuple[SalaryComponent, ...]:
        return self.by_category(ComponentCategory.EMPLOYER_CONTRIBUTION)

    @property
    def breakdown(self) -> SalaryBreakdown:
        return SalaryBreakdown.from_components(self.components, self.annual_ctc)


# ---------------------------------------------------------------------------
# View configuration side
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Columns:
    monthly: bool = True
    yearly: bool = True


@dataclass(frozen=True)
class Section:
    """One configured, ordered block of rows in a document."""

    section_key: str
    data_source: DataSource = DataSource.EARNINGS
    mode: FilterMode = FilterMode.INCLUDE_ALL
    components: tuple[str, ...] = ()
    columns: Columns = field(default_factory=Columns)
    show_total: bool = True
    total_label: str = "Total"
    title: str | None = None
    allow_zero: bool = True

    @property
    def display_title(self) -> str:
        return self.title or self.data_source.default_title

    def to_dict(self) -> dict[str, Any]:
        return {
            "section_key": self.section_key,
            "data_source": self.data_source.value,
            "mode": self.mode.value,
            "components": list(self.components),
            "columns": {"monthly": self.columns.monthly, "yearly": self.columns.yearly},
            "show_total": self.show_total,
            "total_label": self.total_label,
            "title": self.title,
            "allow_zero": self.allow_zero,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Section:
        """Rebuild a section from its stored form."""
        columns = data.get("columns") or {}
        return cls(
            section_key=data["section_key"],
            data_source=DataSource(data.get("data_source", "earnings")),
            mode=FilterMode(data.get("mode", "INCLUDE_ALL")),
            components=tuple(data.get("components") or ()),
            columns=Columns(
                monthly=bool(columns.get("monthly", True)),
                yearly=bool(columns.get("yearly", True)),
            ),
            show_total=bool(data.get("show_total", True)),
            total_label=data.get("total_label") or "Total",
            title=data.get("title"),
            allow_zero=bool(data.get("allow_zero", True)),
        )


@dataclass(frozen=True)
class DocumentViewConfig:
    """Per tenant, per document type list of sections."""

    tenant_id: str
    document_type: DocumentType
    sections: tuple[Section, ...]
    is_active: bool = True
    config_id: UUID | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True)
class ResolvedConfig:
    """A view config plus whether it is the built-in fallback."""

    config: DocumentViewConfig
    is_default: bool


# ---------------------------------------------------------------------------
# Render model
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RenderRow:
    name: str
    category: ComponentCategory
    monthly_amount: Decimal | None = None
    annual_amount: Decimal | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "category": self.category.value,
            "monthly_amount": _opt_str(self.monthly_amount),
            "annual_amount": _opt_str(self.annual_amount),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RenderRow:
        return cls(
            name=data["name"],
            category=ComponentCategory(data["category"]),
            monthly_amount=_opt_decimal(data.get("monthly_amount")),
            annual_amount=_opt_decimal(data.get("annual_amount")),
        )


@dataclass(frozen=True)
class RenderSection:
    section_key: str
    title: str
    rows: tuple[RenderRow, ...]
    total: Decimal | None = None
    total_yearly: Decimal | None = None
    total_label: str | None = None

    @property
    def is_empty(self) -> bool:
        return not self.rows

    def to_dict(self) -> dict[str, Any]:
        return {
            "section_key": self.section_key,
            "title": self.title,
            "rows": [row.to_dict() for row in self.rows],
            "total": _opt_str(self.total),
            "total_yearly": _opt_str(self.total_yearly),
            "total_label": self.total_label,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RenderSection:
        return cls(
            section_key=data["section_key"],
            title=data["title"],
            rows=tuple(RenderRow.from_dict(r) for r in data.get("rows", [])),
            total=_opt_decimal(data.get("total")),
            total_yearly=_opt_decimal(data.get("total_yearly")),
            total_label=data.get("total_label"),
        )


@dataclass(frozen=True)
class RenderSummary:
    """Snapshot-level figures every document may print."""

    ctc_monthly: Decimal = ZERO
    ctc_yearly: Decimal = ZERO
    gross_monthly: Decimal = ZERO
    net_monthly: Decimal = ZERO

    def to_dict(self) -> dict[str, str]:
        return {name: str(getattr(self, name)) for name in self.__dataclass_fields__}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RenderSummary:
        return cls(**{k: to_decimal(v) for k, v in data.items()})


@dataclass(frozen=True)
class RenderModel:
    """Composer output: ordered sections ready for templating."""

    document_type: DocumentType
    subject_id: str
    snapshot_version: int
    sections: tuple[RenderSection, ...]
    summary: RenderSummary = field(default_factory=RenderSummary)

    def section(self, section_key: str) -> RenderSection | None:
        for sec in self.sections:
            if sec.section_key == section_key:
                return sec
        return None

    def to_dict(self) -> dict[str, Any]:
        """Canonical JSON-safe form (amounts as strings)."""
        return {
            "document_type": self.document_type.value,
            "subject_id": self.subject_id,
            "snapshot_version": self.snapshot_version,
            "sections": [sec.to_dict() for sec in self.sections],
            "summary": self.summary.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RenderModel:
        return cls(
            document_type=DocumentType(data["document_type"]),
            subject_id=data["subject_id"],
            snapshot_version=int(data["snapshot_version"]),
            sections=tuple(RenderSection.from_dict(s) for s in data.get("sections", [])),
            summary=RenderSummary.from_dict(data.get("summary") or {}),
        )

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), sort_keys=True, separators=(",", ":"))

    def fingerprint(self) -> str:
        """Deterministic hash of the canonical form."""
        return hashlib.sha256(self.to_json().encode()).hexdigest()[:32]

    def to_template_context(self) -> dict[str, Any]:
        """Flatten into the placeholder map document templates use.

        Each section becomes a repeating block keyed by ``section_key`` with
        ``name``, ``monthly`` and ``yearly`` fields; totals are exposed as
        ``<key>_total_monthly``, ``<key>_total_yearly`` and ``<key>_total_label``.
        """
        context: dict[str, Any] = {}
        for sec in self.sections:
            context[sec.section_key] = [
                {
                    "name": row.name,
                    "monthly": _fmt(row.monthly_amount),
                    "yearly": _fmt(row.annual_amount),
                }
                for row in sec.rows
            ]
            if sec.total_label is not None:
                context[f"{sec.section_key}_total_monthly"] = _fmt(sec.total)
                context[f"{sec.section_key}_total_yearly"] = _fmt(sec.total_yearly)
                context[f"{sec.section_key}_total_label"] = sec.total_label

        context["ctc_monthly"] = format_inr(self.summary.ctc_monthly)
        context["ctc_yearly"] = format_inr(self.summary.ctc_yearly)
        context["gross_monthly"] = format_inr(self.summary.gross_monthly)
        context["net_monthly"] = format_inr(self.summary.net_monthly)
        return context


def _fmt(amount: Decimal | None) -> str | None:
    return format_inr(amount) if amount is not None else None
