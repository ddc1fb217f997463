"""Tests for the salary snapshot store."""

import asyncio
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import select

from hrms_core.composer.types import ComponentCategory, SnapshotReason, SubjectType
from hrms_core.exceptions import (
    ImmutableRecordError,
    InvalidComponentError,
    SnapshotNotFoundError,
    WriteConflictError,
)
from hrms_core.models import SalarySnapshotRecord, SubjectSalaryPointer
from hrms_core.services.snapshot_service import SalarySnapshotStore, default_earnings_from_ctc
from hrms_core.tenancy import TenantRegistry

pytestmark = pytest.mark.asyncio


@pytest.fixture
def snapshots(handle) -> SalarySnapshotStore:
    return SalarySnapshotStore(handle)


class TestCreateSnapshot:
    """Test snapshot creation and versioning."""

    async def test_create_derives_annual_amounts(self, snapshots, component_payload):
        snap = await snapshots.create_snapshot(
            "emp-1",
            component_payload,
            reason=SnapshotReason.JOINING,
            effective_from=date(2024, 4, 1),
            created_by="hr-admin",
        )

        assert snap.version == 1
        assert snap.reason is SnapshotReason.JOINING
        assert snap.effective_from == date(2024, 4, 1)
        assert snap.defaults_applied is False
        assert snap.snapshot_id is not None
        for c in snap.components:
            assert c.annual_amount == (c.monthly_amount * 12).quantize(Decimal("0.01"))

    async def test_components_survive_storage(self, snapshots, component_payload):
        created = await snapshots.create_snapshot("emp-1", component_payload)
        loaded = await snapshots.get_version("emp-1", 1)

        assert loaded.components == created.components
        assert loaded.employee_deductions[0].category is ComponentCategory.EMPLOYEE_DEDUCTION
        assert loaded.components[0].pro_rata is True
        assert loaded.components[0].removable is False

    async def test_versions_increase_and_pointer_moves(self, snapshots):
        v1 = await snapshots.create_snapshot("emp-1", [{"name": "Basic", "monthlyAmount": 40000}])
        v2 = await snapshots.create_snapshot(
            "emp-1",
            [{"name": "Basic", "monthlyAmount": 45000}],
            reason="INCREMENT",
        )

        assert (v1.version, v2.version) == (1, 2)
        current = await snapshots.get_current("emp-1")
        assert current.version == 2
        assert current.components[0].monthly_amount == Decimal("45000.00")

        # The old version is untouched
        old = await snapshots.get_version("emp-1", 1)
        assert old.components[0].monthly_amount == Decimal("40000.00")

    async def test_versions_are_per_subject(self, snapshots):
        await snapshots.create_snapshot("emp-1", [{"name": "Basic", "monthlyAmount": 1}])
        await snapshots.create_snapshot("emp-1", [{"name": "Basic", "monthlyAmount": 2}])
        other = await snapshots.create_snapshot(
            "cand-1",
            [{"name": "Basic", "monthlyAmount": 3}],
            subject_type=SubjectType.CANDIDATE,
        )

        assert other.version == 1
        assert other.subject_type is SubjectType.CANDIDATE

    async def test_concurrent_creation_allocates_consecutive_versions(self, snapshots):
        n = 10
        created = await asyncio.gather(
            *(
                snapshots.create_snapshot("emp-1", [{"name": "Basic", "monthlyAmount": 1000 + i}])
                for i in range(n)
            )
        )

        assert sorted(s.version for s in created) == list(range(1, n + 1))
        history = await snapshots.list_versions("emp-1")
        assert [s.version for s in history] == list(range(1, n + 1))
        current = await snapshots.get_current("emp-1")
        assert current.version == n

    async def test_first_version_race_across_registries(self, directory, settings):
        registries = [TenantRegistry(directory, settings) for _ in range(2)]
        try:
            stores = [SalarySnapshotStore(await r.resolve("acme")) for r in registries]
            created = await asyncio.gather(
                *(
                    store.create_snapshot("emp-9", [{"name": "Basic", "monthlyAmount": 1000 + i}])
                    for i, store in enumerate(stores)
                )
            )
            history = await stores[0].list_versions("emp-9")
        finally:
            for r in registries:
                await r.close()

        assert sorted(s.version for s in created) == [1, 2]
        assert [s.version for s in history] == [1, 2]

    async def test_stale_version_read_is_retried(self, snapshots, monkeypatch):
        await snapshots.create_snapshot("emp-9", [{"name": "Basic", "monthlyAmount": 1000}])
        reads: list[str] = []
        get_pointer = SalarySnapshotStore._get_pointer

        async def stale_once(session, subject_id, for_update=False):
            reads.append(subject_id)
            if len(reads) == 1:
                return None
            return await get_pointer(session, subject_id, for_update)

        monkeypatch.setattr(SalarySnapshotStore, "_get_pointer", staticmethod(stale_once))
        snap = await snapshots.create_snapshot("emp-9", [{"name": "Basic", "monthlyAmount": 2000}])

        assert snap.version == 2
        assert len(reads) == 2

    async def test_persistent_conflict_is_a_typed_error(self, snapshots, monkeypatch):
        await snapshots.create_snapshot("emp-9", [{"name": "Basic", "monthlyAmount": 1000}])

        async def always_stale(session, subject_id, for_update=False):
            return None

        monkeypatch.setattr(SalarySnapshotStore, "_get_pointer", staticmethod(always_stale))
        with pytest.raises(WriteConflictError) as exc_info:
            await snapshots.create_snapshot("emp-9", [{"name": "Basic", "monthlyAmount": 2000}])

        assert exc_info.value.retryable is True
        assert exc_info.value.to_dict()["code"] == "WRITE_CONFLICT"
        assert exc_info.value.operation == "create_snapshot"

    async def test_invalid_batch_reports_every_violation(self, snapshots):
        with pytest.raises(InvalidComponentError) as exc_info:
            await snapshots.create_snapshot(
                "emp-1",
                [
                    {"name": "  ", "monthlyAmount": 100},
                    {"name": "HRA", "monthlyAmount": None},
                ],
            )

        assert [v.index for v in exc_info.value.violations] == [0, 1]
        # Nothing was written
        assert await snapshots.get_current("emp-1") is None

    async def test_breakdown_is_stored(self, snapshots, handle, component_payload):
        await snapshots.create_snapshot("emp-1", component_payload)

        async with handle.store.session() as session:
            record = (await session.execute(select(SalarySnapshotRecord))).scalar_one()

        assert record.breakdown["gross_monthly"] == "70000.00"
        assert record.breakdown["deductions_monthly"] == "1800.00"
        assert record.breakdown["take_home_monthly"] == "68200.00"
        assert record.breakdown["ctc_monthly"] == "71800.00"


class TestDefaultsFromCTC:
    """Test the CTC auto-generation policy."""

    def test_default_split(self):
        components = default_earnings_from_ctc(Decimal("1200000"))

        assert [(c.name, c.monthly_amount) for c in components] == [
            ("Basic", Decimal("50000.00")),
            ("Dearness Allowance", Decimal("30000.00")),
            ("Allowance", Decimal("20000.00")),
        ]
        assert sum(c.monthly_amount for c in components) == Decimal("1200000") / 12
        basic, da, allowance = components
        assert (basic.pro_rata, basic.removable) == (True, False)
        assert (da.pro_rata, da.removable) == (True, True)
        assert (allowance.pro_rata, allowance.removable) == (False, True)

    def test_split_rounds_each_line(self):
        components = default_earnings_from_ctc(1000000)

        # 1000000 / 12 = 83333.333...
        assert [c.monthly_amount for c in components] == [
            Decimal("41666.67"),
            Decimal("25000.00"),
            Decimal("16666.67"),
        ]
        assert components[0].annual_amount == Decimal("500000.04")

    @pytest.mark.parametrize("ctc", [0, -5, "-1000"])
    def test_non_positive_ctc_rejected(self, ctc):
        with pytest.raises(InvalidComponentError) as exc_info:
            default_earnings_from_ctc(ctc)

        assert exc_info.value.violations[0].field == "annual_ctc"

    async def test_snapshot_from_ctc_is_flagged(self, snapshots):
        snap = await snapshots.create_snapshot_from_ctc("cand-1", 1200000, subject_type="candidate")

        assert snap.defaults_applied is True
        assert snap.annual_ctc == Decimal("1200000")
        assert snap.breakdown.ctc_monthly == Decimal("100000.00")
        assert snap.breakdown.gross_monthly == Decimal("100000.00")


class TestCurrentPointer:
    """Test reading and moving the current snapshot."""

    async def test_no_snapshot(self, snapshots):
        assert await snapshots.get_current("nobody") is None
        assert await snapshots.get_version("nobody", 1) is None
        assert await snapshots.list_versions("nobody") == []

    async def test_set_current(self, snapshots, handle):
        await snapshots.create_snapshot("emp-1", [{"name": "Basic", "monthlyAmount": 1}])
        await snapshots.create_snapshot("emp-1", [{"name": "Basic", "monthlyAmount": 2}])

        moved = await snapshots.set_current("emp-1", 1)

        assert moved.version == 1
        assert (await snapshots.get_current("emp-1")).version == 1
        async with handle.store.session() as session:
            pointer = await session.get(SubjectSalaryPointer, "emp-1")
        assert (pointer.current_version, pointer.latest_version) == (1, 2)

        # A new snapshot still gets the next version and becomes current
        v3 = await snapshots.create_snapshot("emp-1", [{"name": "Basic", "monthlyAmount": 3}])
        assert v3.version == 3
        assert (await snapshots.get_current("emp-1")).version == 3

    async def test_set_current_unknown_version(self, snapshots):
        await snapshots.create_snapshot("emp-1", [{"name": "Basic", "monthlyAmount": 1}])

        with pytest.raises(SnapshotNotFoundError) as exc_info:
            await snapshots.set_current("emp-1", 7)

        assert exc_info.value.version == 7


class TestImmutability:
    """Test that stored snapshots cannot be modified."""

    async def test_update_rejected(self, snapshots, handle):
        await snapshots.create_snapshot("emp-1", [{"name": "Basic", "monthlyAmount": 1}])

        with pytest.raises(ImmutableRecordError) as exc_info:
            async with handle.store.session() as session:
                record = (await session.execute(select(SalarySnapshotRecord))).scalar_one()
                record.notes = "edited"

        assert exc_info.value.operation == "update"

    async def test_delete_rejected(self, snapshots, handle):
        await snapshots.create_snapshot("emp-1", [{"name": "Basic", "monthlyAmount": 1}])

        with pytest.raises(ImmutableRecordError) as exc_info:
            async with handle.store.session() as session:
                record = (await session.execute(select(SalarySnapshotRecord))).scalar_one()
                await session.delete(record)

        assert exc_info.value.operation == "delete"
        assert (await snapshots.get_current("emp-1")).version == 1
