"""Document composer: salary snapshot + view config -> render model."""

from __future__ import annotations

from hrms_core.composer.money import sum_amounts
from hrms_core.composer.types import (
    ComponentCategory,
    DataSource,
    DocumentViewConfig,
    FilterMode,
    RenderModel,
    RenderRow,
    RenderSection,
    RenderSummary,
    SalaryComponent,
    SalarySnapshot,
    Section,
    normalize_name,
)

_QUALIFIERS = {
    source.value: source.categories[0]
    for source in DataSource
    if source is not DataSource.ALL
}


def parse_component_ref(entry: str) -> tuple[ComponentCategory | None, str]:
    """Split a section component entry into (category, matching key).

    Entries may be qualified with a data source, e.g.
    ``"employeeDeductions:Professional Tax"``, to pick one category when the
    same name exists in several. Unqualified entries match every category.
    """
    prefix, sep, rest = entry.partition(":")
    if sep and prefix.strip() in _QUALIFIERS:
        return _QUALIFIERS[prefix.strip()], normalize_name(rest)
    return None, normalize_name(entry)


def _matches(component: SalaryComponent, ref: tuple[ComponentCategory | None, str]) -> bool:
    category, key = ref
    if category is not None and component.category is not category:
        return False
    return normalize_name(component.name) == key


class DocumentComposer:
    """Renders a salary snapshot according to a document view config.

    Pipeline per section (in config order):
    1) Select candidates by data source
    2) Apply the inclusion mode
    3) Optionally drop zero-value rows
    4) Project the requested columns
    5) Compute totals over the surviving rows

    Composition is pure: no I/O, no clock, no randomness. The same snapshot
    and config always produce an identical RenderModel.
    """

    @classmethod
    def compose(cls, snapshot: SalarySnapshot, config: DocumentViewConfig) -> RenderModel:
        breakdown = snapshot.breakdown
        return RenderModel(
            document_type=config.document_type,
            subject_id=snapshot.subject_id,
            snapshot_version=snapshot.version,
            sections=tuple(cls.compose_section(snapshot, sec) for sec in config.sections),
            summary=RenderSummary(
                ctc_monthly=breakdown.ctc_monthly,
                ctc_yearly=breakdown.ctc_yearly,
                gross_monthly=breakdown.gross_monthly,
                net_monthly=breakdown.take_home_monthly,
            ),
        )

    @classmethod
    def compose_section(cls, snapshot: SalarySnapshot, section: Section) -> RenderSection:
        candidates = cls.select_candidates(snapshot, section.data_source)
        selected = cls.apply_mode(candidates, section)

        if not section.allow_zero:
            selected = [
                c for c in selected if c.monthly_amount != 0 or c.annual_amount != 0
            ]

        rows = tuple(
            RenderRow(
                name=c.name,
                category=c.category,
                monthly_amount=c.monthly_amount if section.columns.monthly else None,
                annual_amount=c.annual_amount if section.columns.yearly else None,
            )
            for c in selected
        )

        total = total_yearly = None
        total_label = None
        if section.show_total:
            total = sum_amounts([c.monthly_amount for c in selected])
            if section.columns.yearly:
                total_yearly = sum_amounts([c.annual_amount for c in selected])
            total_label = section.total_label

        return RenderSection(
            section_key=section.section_key,
            title=section.display_title,
            rows=rows,
            total=total,
            total_yearly=total_yearly,
            total_label=total_label,
        )

    @staticmethod
    def select_candidates(
        snapshot: SalarySnapshot, data_source: DataSource
    ) -> list[SalaryComponent]:
        """Components of the requested categories, category order then snapshot order."""
        candidates: list[SalaryComponent] = []
        for category in data_source.categories:
            candidates.extend(snapshot.by_category(category))
        return candidates

    @staticmethod
    def apply_mode(
        candidates: list[SalaryComponent], section: Section
    ) -> list[SalaryComponent]:
        if section.mode is FilterMode.INCLUDE_ALL:
            return list(candidates)

        refs = [parse_component_ref(entry) for entry in section.components]

        if section.mode is FilterMode.EXCLUDE_SPECIFIC:
            return [c for c in candidates if not any(_matches(c, ref) for ref in refs)]

        # INCLUDE_SPECIFIC: the section's list order wins, absent names are skipped
        picked: list[SalaryComponent] = []
        seen: set[tuple[ComponentCategory, str]] = set()
        for ref in refs:
            for c in candidates:
                if c.identity in seen or not _matches(c, ref):
                    continue
                seen.add(c.identity)
                picked.append(c)
        return picked
