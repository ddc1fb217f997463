"""Tenant component catalog: earning, deduction and benefit definitions."""

from __future__ import annotations

from collections.abc import Iterable
from decimal import Decimal

from sqlalchemy import select

from hrms_core.composer.money import round_to_cents, to_decimal
from hrms_core.composer.types import CalculationType, ComponentCategory, SalaryComponent
from hrms_core.exceptions import (
    ComponentDefinitionNotFoundError,
    ComponentViolation,
    InvalidComponentError,
)
from hrms_core.logging_config import get_logger
from hrms_core.models import ComponentDefinition
from hrms_core.schemas import parse_definition
from hrms_core.tenancy import TenantHandle

logger = get_logger(__name__)

BASIC_CODE = "BASIC"

# Resolution passes: PERCENT_OF_BASIC needs the resolved Basic
_RESOLUTION_ORDER = (
    CalculationType.PERCENT_OF_CTC,
    CalculationType.FIXED,
    CalculationType.PERCENT_OF_BASIC,
)


class ComponentCatalog:
    """Definitions that resolve into salary components when a snapshot is computed.

    Toggling or editing a definition never touches existing snapshots; they
    hold their own resolved copies.
    """

    def __init__(self, handle: TenantHandle):
        self.handle = handle
        self.store = handle.store

    async def add_definition(
        self,
        code: str,
        name: str,
        category: ComponentCategory | str = ComponentCategory.EARNING,
        calculation_type: CalculationType | str = CalculationType.FIXED,
        amount: Decimal | int | str | None = None,
        percentage: Decimal | int | str | None = None,
        pro_rata: bool = False,
        taxable: bool = True,
        removable: bool = True,
        display_order: int = 0,
    ) -> ComponentDefinition:
        """Validate and store a definition.

        Raises InvalidComponentError listing every invalid field.
        """
        checked = parse_definition(
            {
                "code": code,
                "name": name,
                "category": category,
                "calculation_type": calculation_type,
                "amount": amount,
                "percentage": percentage,
                "pro_rata": pro_rata,
                "taxable": taxable,
                "removable": removable,
                "display_order": display_order,
            }
        )

        definition = ComponentDefinition(
            tenant_id=self.handle.tenant_id,
            code=checked.code,
            name=checked.name,
            category=checked.category.value,
            calculation_type=checked.calculation_type.value,
            amount=round_to_cents(checked.amount) if checked.amount is not None else None,
            percentage=checked.percentage,
            pro_rata=checked.pro_rata,
            taxable=checked.taxable,
            removable=checked.removable,
            display_order=checked.display_order,
        )
        async with self.store.session("add_component_definition") as session:
            session.add(definition)

        logger.info(
            "Component definition added",
            extra={"tenant_id": self.handle.tenant_id, "code": checked.code},
        )
        return definition

    async def set_active(self, code: str, active: bool) -> ComponentDefinition:
        async with self.store.session("set_component_definition_active") as session:
            result = await session.execute(
                select(ComponentDefinition).where(
                    ComponentDefinition.tenant_id == self.handle.tenant_id,
                    ComponentDefinition.code == code.strip().upper(),
                )
            )
            definition = result.scalar_one_or_none()
            if definition is None:
                raise ComponentDefinitionNotFoundError(self.handle.tenant_id, code)
            definition.is_active = active
        return definition

    async def list_definitions(
        self,
        category: ComponentCategory | str | None = None,
        active_only: bool = False,
    ) -> list[ComponentDefinition]:
        stmt = select(ComponentDefinition).where(
            ComponentDefinition.tenant_id == self.handle.tenant_id
        )
        if category is not None:
            stmt = stmt.where(ComponentDefinition.category == ComponentCategory(category).value)
        if active_only:
            stmt = stmt.where(ComponentDefinition.is_active.is_(True))
        stmt = stmt.order_by(ComponentDefinition.display_order, ComponentDefinition.code)

        async with self.store.session("list_component_definitions") as session:
            result = await session.execute(stmt)
            return list(result.scalars())

    async def resolve_components(
        self,
        annual_ctc: Decimal | int | str,
        codes: Iterable[str] | None = None,
    ) -> list[SalaryComponent]:
        """Resolve active definitions into monthly salary components.

        Output follows ``display_order``. Raises InvalidComponentError when a
        PERCENT_OF_BASIC line is requested without a resolvable Basic.
        """
        definitions = await self.list_definitions(active_only=True)
        if codes is not None:
            wanted = {c.strip().upper() for c in codes}
            definitions = [d for d in definitions if d.code in wanted]
        return resolve_definitions(definitions, to_decimal(annual_ctc))


def resolve_definitions(
    definitions: list[ComponentDefinition], annual_ctc: Decimal
) -> list[SalaryComponent]:
    monthly_ctc = annual_ctc / 12
    resolved: dict[str, SalaryComponent] = {}

    for calc_type in _RESOLUTION_ORDER:
        for d in definitions:
            if d.calculation_type != calc_type.value:
                continue
            if calc_type is CalculationType.FIXED:
                monthly = to_decimal(d.amount or 0)
            elif calc_type is CalculationType.PERCENT_OF_CTC:
                monthly = monthly_ctc * to_decimal(d.percentage) / 100
            else:
                basic = resolved.get(BASIC_CODE)
                if basic is None:
                    raise InvalidComponentError(
                        [
                            ComponentViolation(
                                None,
                                "calculation_type",
                                f"{d.code} is a percentage of Basic but no {BASIC_CODE} "
                                "component resolved",
                                d.name,
                            )
                        ]
                    )
                monthly = basic.monthly_amount * to_decimal(d.percentage) / 100

            resolved[d.code] = SalaryComponent.derive(
                name=d.name,
                monthly_amount=monthly,
                category=ComponentCategory(d.category),
                calculation_type=calc_type,
                percentage=to_decimal(d.percentage) if d.percentage is not None else None,
                pro_rata=d.pro_rata,
                taxable=d.taxable,
                removable=d.removable,
                code=d.code,
            )

    return [resolved[d.code] for d in definitions if d.code in resolved]
