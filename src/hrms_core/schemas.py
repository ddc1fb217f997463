"""Boundary validation for external payloads.

Component lists, catalog definitions and view-config sections arrive as loosely typed JSON (camel
or snake case keys). They are validated here, once, and converted into the
immutable domain types the rest of the core works with.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from hrms_core.composer.types import (
    CalculationType,
    Columns,
    ComponentCategory,
    DataSource,
    DocumentType,
    FilterMode,
    SalaryComponent,
    Section,
)
from hrms_core.exceptions import (
    ComponentViolation,
    InvalidComponentError,
    InvalidViewConfigError,
)


class ComponentIn(BaseModel):
    """Salary component as submitted by a caller."""

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True, extra="ignore")

    name: str = Field(min_length=1)
    monthly_amount: Decimal = Field(alias="monthlyAmount", allow_inf_nan=False)
    category: ComponentCategory = ComponentCategory.EARNING
    calculation_type: CalculationType = Field(CalculationType.FIXED, alias="calculationType")
    percentage: Decimal | None = Field(None, ge=0, le=100)
    pro_rata: bool = Field(False, alias="proRata")
    taxable: bool = True
    removable: bool = Field(True, alias="isRemovable")
    code: str | None = Field(None, alias="componentCode")

    def to_component(self) -> SalaryComponent:
        return SalaryComponent.derive(
            name=self.name,
            monthly_amount=self.monthly_amount,
            category=self.category,
            calculation_type=self.calculation_type,
            percentage=self.percentage,
            pro_rata=self.pro_rata,
            taxable=self.taxable,
            removable=self.removable,
            code=self.code,
        )


class DefinitionIn(BaseModel):
    """Catalog definition as submitted by a caller."""

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True, extra="ignore")

    code: str = Field(min_length=1)
    name: str = Field(min_length=1)
    category: ComponentCategory = ComponentCategory.EARNING
    calculation_type: CalculationType = Field(CalculationType.FIXED, alias="calculationType")
    amount: Decimal | None = Field(None, allow_inf_nan=False)
    percentage: Decimal | None = Field(None, ge=0, le=100, allow_inf_nan=False)
    pro_rata: bool = Field(False, alias="proRata")
    taxable: bool = True
    removable: bool = Field(True, alias="isRemovable")
    display_order: int = Field(0, alias="displayOrder")

    @field_validator("code")
    @classmethod
    def _upper_code(cls, value: str) -> str:
        return value.upper()


class ColumnsIn(BaseModel):
    monthly: bool = True
    yearly: bool = True


class SectionIn(BaseModel):
    """View-config section as submitted by a caller."""

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True, extra="forbid")

    section_key: str = Field(alias="sectionKey", min_length=1)
    data_source: DataSource = Field(DataSource.EARNINGS, alias="dataSource")
    mode: FilterMode = FilterMode.INCLUDE_ALL
    components: list[str] = Field(default_factory=list)
    columns: ColumnsIn = Field(default_factory=ColumnsIn)
    show_total: bool = Field(True, alias="showTotal")
    total_label: str = Field("Total", alias="totalLabel")
    title: str | None = None
    allow_zero: bool = Field(True, alias="allowZero")

    def to_section(self) -> Section:
        return Section(
            section_key=self.section_key,
            data_source=self.data_source,
            mode=self.mode,
            components=tuple(self.components),
            columns=Columns(monthly=self.columns.monthly, yearly=self.columns.yearly),
            show_total=self.show_total,
            total_label=self.total_label,
            title=self.title,
            allow_zero=self.allow_zero,
        )


_COMPONENT_FIELD_BY_ALIAS = {
    info.alias: name for name, info in ComponentIn.model_fields.items() if info.alias
}


_DEFINITION_FIELD_BY_ALIAS = {
    info.alias: name for name, info in DefinitionIn.model_fields.items() if info.alias
}


def _loc_to_field(
    loc: tuple[Any, ...], aliases: Mapping[str, str] = _COMPONENT_FIELD_BY_ALIAS
) -> str:
    if not loc:
        return "component"
    head = str(loc[0])
    return aliases.get(head, head)


def parse_components(items: Iterable[Mapping[str, Any] | SalaryComponent]) -> list[SalaryComponent]:
    """Validate a component list, reporting every violation at once.

    Raises InvalidComponentError listing each offending entry and field.
    """
    violations: list[ComponentViolation] = []
    parsed: list[SalaryComponent] = []
    seen: dict[tuple[ComponentCategory, str], int] = {}

    for index, item in enumerate(items):
        raw = item.to_dict() if isinstance(item, SalaryComponent) else item
        name = raw.get("name") if isinstance(raw, Mapping) else None
        try:
            model = ComponentIn.model_validate(raw)
        except PydanticValidationError as exc:
            for err in exc.errors():
                violations.append(
                    ComponentViolation(
                        index=index,
                        field=_loc_to_field(err["loc"]),
                        message=err["msg"],
                        name=name if isinstance(name, str) else None,
                    )
                )
            continue

        component = model.to_component()
        first = seen.setdefault(component.identity, index)
        if first != index:
            violations.append(
                ComponentViolation(
                    index=index,
                    field="name",
                    message=f"duplicate of component {first} in category {component.category.value}",
                    name=component.name,
                )
            )
            continue
        parsed.append(component)

    if violations:
        raise InvalidComponentError(violations)
    return parsed


def _pick(raw: Mapping[str, Any], field: str) -> Any:
    alias = DefinitionIn.model_fields[field].alias
    if field not in raw and alias:
        return raw.get(alias)
    return raw.get(field)


def parse_definition(raw: Mapping[str, Any]) -> DefinitionIn:
    """Validate a catalog definition, reporting every violation at once.

    FIXED definitions need an amount; percentage based ones need a
    percentage. Raises InvalidComponentError.
    """
    violations: list[ComponentViolation] = []
    name = raw.get("name")
    label = name.strip() if isinstance(name, str) else None
    model: DefinitionIn | None = None

    try:
        model = DefinitionIn.model_validate(raw)
    except PydanticValidationError as exc:
        for err in exc.errors():
            violations.append(
                ComponentViolation(
                    index=None,
                    field=_loc_to_field(err["loc"], _DEFINITION_FIELD_BY_ALIAS),
                    message=err["msg"],
                    name=label,
                )
            )

    try:
        calculation_type = CalculationType(_pick(raw, "calculation_type") or CalculationType.FIXED)
    except ValueError:
        calculation_type = None
    if calculation_type is CalculationType.FIXED:
        if _pick(raw, "amount") is None:
            violations.append(ComponentViolation(None, "amount", "required for FIXED", label))
    elif calculation_type is not None and _pick(raw, "percentage") is None:
        violations.append(
            ComponentViolation(None, "percentage", f"required for {calculation_type.value}", label)
        )

    if violations:
        raise InvalidComponentError(violations)
    return model


def parse_sections(items: Iterable[Mapping[str, Any] | Section]) -> tuple[Section, ...]:
    """Validate view-config sections, reporting every problem at once."""
    problems: list[str] = []
    sections: list[Section] = []

    for index, item in enumerate(items):
        if isinstance(item, Section):
            sections.append(item)
            continue
        try:
            sections.append(SectionIn.model_validate(item).to_section())
        except PydanticValidationError as exc:
            for err in exc.errors():
                where = ".".join(str(p) for p in err["loc"]) or "section"
                problems.append(f"sections[{index}].{where}: {err['msg']}")

    keys = [s.section_key for s in sections]
    for key in sorted({k for k in keys if keys.count(k) > 1}):
        problems.append(f"duplicate section_key '{key}'")

    if problems:
        raise InvalidViewConfigError(problems)
    return tuple(sections)


def coerce_document_type(value: DocumentType | str) -> DocumentType:
    """Parse a document type name at the boundary."""
    if isinstance(value, DocumentType):
        return value
    try:
        return DocumentType(str(value).strip().upper())
    except ValueError:
        allowed = ", ".join(t.value for t in DocumentType)
        raise InvalidViewConfigError(
            [f"unknown document type '{value}' (expected one of: {allowed})"]
        ) from None
