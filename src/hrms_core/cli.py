"""HRMS core command line interface.

Provides operational tools for:
- Tenant registration
- Tenant listing
- Tenant store provisioning
- Seeding built-in document view configs
- Offline composition of a snapshot file

Usage:
    python -m hrms_core register-tenant --tenant-id acme --name "Acme Corp"
    python -m hrms_core list-tenants --status active
    python -m hrms_core provision --tenant acme
    python -m hrms_core seed-defaults --tenant acme
    python -m hrms_core compose --snapshot snap.json --document-type PAYSLIP
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from hrms_core.composer.defaults import default_config
from hrms_core.composer.engine import DocumentComposer
from hrms_core.composer.money import to_decimal
from hrms_core.composer.types import DocumentViewConfig, SalarySnapshot
from hrms_core.config import Settings, get_settings
from hrms_core.database import ControlPlane
from hrms_core.exceptions import HRMSCoreError
from hrms_core.logging_config import configure_logging
from hrms_core.models.tenant import TENANT_STATUSES
from hrms_core.schemas import coerce_document_type, parse_components, parse_sections
from hrms_core.services.view_config_service import ViewConfigService
from hrms_core.tenancy import TenantDirectory, TenantRegistry


def load_json(path: str) -> Any:
    """Read a JSON file ("-" reads stdin)."""
    if path == "-":
        return json.load(sys.stdin)
    return json.loads(Path(path).read_text(encoding="utf-8"))


def snapshot_from_payload(payload: dict[str, Any]) -> SalarySnapshot:
    """Build an in-memory snapshot from a JSON document.

    Expected shape: ``{"subject_id", "version"?, "annual_ctc"?, "components": [...]}``.
    """
    annual_ctc = payload.get("annual_ctc")
    return SalarySnapshot(
        subject_id=str(payload.get("subject_id", "subject")),
        version=int(payload.get("version", 1)),
        components=tuple(parse_components(payload.get("components") or [])),
        annual_ctc=to_decimal(annual_ctc) if annual_ctc is not None else None,
    )


class HRMSCli:
    """HRMS core Command Line Interface."""

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings
        self.parser = self._build_parser()

    @property
    def settings(self) -> Settings:
        if self._settings is None:
            self._settings = get_settings()
        return self._settings

    def _build_parser(self) -> argparse.ArgumentParser:
        """Build argument parser."""
        parser = argparse.ArgumentParser(
            prog="python -m hrms_core",
            description="HRMS core operational tools",
        )
        subparsers = parser.add_subparsers(dest="command", help="Commands")

        # register-tenant command
        register = subparsers.add_parser(
            "register-tenant",
            help="Add a tenant to the control-plane directory",
        )
        register.add_argument("--tenant-id", required=True, help="Tenant ID")
        register.add_argument("--name", required=True, help="Display name")
        register.add_argument("--code", help="Unique short code usable in place of the ID")
        register.add_argument(
            "--status",
            choices=TENANT_STATUSES,
            default="active",
            help="Initial status (default: active)",
        )
        register.add_argument(
            "--database-name",
            help="Store database name (default: <prefix><tenant-id>)",
        )

        # list-tenants command
        list_tenants = subparsers.add_parser(
            "list-tenants",
            help="Show tenants registered in the control-plane directory",
        )
        list_tenants.add_argument(
            "--status",
            choices=TENANT_STATUSES,
            help="Only tenants with this status",
        )

        # provision command
        provision = subparsers.add_parser(
            "provision",
            help="Open a tenant store and create its tables and indexes",
        )
        provision.add_argument("--tenant", required=True, help="Tenant ID or code")

        # seed-defaults command
        seed = subparsers.add_parser(
            "seed-defaults",
            help="Install built-in view configs for document types without one",
        )
        seed.add_argument("--tenant", required=True, help="Tenant ID or code")

        # compose command
        compose = subparsers.add_parser(
            "compose",
            help="Render a snapshot JSON file without touching any store",
        )
        compose.add_argument(
            "--snapshot",
            required=True,
            help="Snapshot JSON file ('-' for stdin)",
        )
        compose.add_argument(
            "--document-type",
            required=True,
            help="JOINING_LETTER, OFFER_LETTER, CTC_ANNEXURE or PAYSLIP",
        )
        compose.add_argument(
            "--config",
            help="Sections JSON file (default: built-in config for the type)",
        )
        compose.add_argument(
            "--context",
            action="store_true",
            help="Print the template placeholder map instead of the render model",
        )

        return parser

    def run(self, args: list[str] | None = None) -> int:
        """Run the CLI with given arguments."""
        parsed = self.parser.parse_args(args)

        if not parsed.command:
            self.parser.print_help()
            return 1

        # Dispatch to command handler
        handlers: dict[str, Callable[..., int]] = {
            "register-tenant": self._cmd_register_tenant,
            "list-tenants": self._cmd_list_tenants,
            "provision": self._cmd_provision,
            "seed-defaults": self._cmd_seed_defaults,
            "compose": self._cmd_compose,
        }

        handler = handlers.get(parsed.command)
        if handler is None:
            print(f"Unknown command: {parsed.command}", file=sys.stderr)
            return 1

        try:
            return handler(parsed)
        except HRMSCoreError as e:
            print(json.dumps({"error": e.to_dict()}, default=str), file=sys.stderr)
            return 2

    @asynccontextmanager
    async def _registry(self) -> AsyncIterator[TenantRegistry]:
        settings = self.settings
        control = ControlPlane.from_url(
            settings.control_database_url,
            timeout_seconds=settings.store_timeout_seconds,
        )
        registry = TenantRegistry(TenantDirectory(control), settings)
        try:
            await control.create_schema()
            yield registry
        finally:
            await registry.close()
            await control.dispose()

    def _cmd_register_tenant(self, args: argparse.Namespace) -> int:
        """Register a tenant."""

        async def register() -> None:
            async with self._registry() as registry:
                info = await registry.directory.register(
                    args.tenant_id,
                    args.name,
                    code=args.code,
                    status=args.status,
                    database_name=args.database_name,
                )
            print(f"Registered tenant: {info.tenant_id} ({info.status})")

        asyncio.run(register())
        return 0

    def _cmd_list_tenants(self, args: argparse.Namespace) -> int:
        """List registered tenants."""

        async def list_all() -> None:
            async with self._registry() as registry:
                tenants = await registry.directory.list_tenants(status=args.status)
            if not tenants:
                print("No tenants registered")
            for info in tenants:
                code = f" [{info.code}]" if info.code else ""
                print(f"{info.tenant_id}{code}  {info.status}  {info.name}")

        asyncio.run(list_all())
        return 0

    def _cmd_provision(self, args: argparse.Namespace) -> int:
        """Resolve a tenant, which provisions its store on first access."""

        async def provision() -> None:
            async with self._registry() as registry:
                handle = await registry.resolve(args.tenant)
                print(f"Provisioned tenant: {handle.tenant_id}")
                print(f"  Models: {', '.join(handle.models.names())}")

        asyncio.run(provision())
        return 0

    def _cmd_seed_defaults(self, args: argparse.Namespace) -> int:
        """Seed built-in view configs."""

        async def seed() -> None:
            async with self._registry() as registry:
                handle = await registry.resolve(args.tenant)
                seeded = await ViewConfigService(handle).seed_defaults()
                print(f"Seeded view configs for tenant: {handle.tenant_id}")
                for doc_type in seeded:
                    print(f"  - {doc_type.value}")
                if not seeded:
                    print("  (all document types already configured)")

        asyncio.run(seed())
        return 0

    def _cmd_compose(self, args: argparse.Namespace) -> int:
        """Compose a snapshot file and print the result as JSON."""
        doc_type = coerce_document_type(args.document_type)
        snapshot = snapshot_from_payload(load_json(args.snapshot))

        if args.config:
            raw = load_json(args.config)
            sections = raw.get("sections", []) if isinstance(raw, dict) else raw
            config = DocumentViewConfig(
                tenant_id="local",
                document_type=doc_type,
                sections=parse_sections(sections),
            )
        else:
            config = default_config("local", doc_type)

        model = DocumentComposer.compose(snapshot, config)
        output = model.to_template_context() if args.context else model.to_dict()
        print(json.dumps(output, indent=2, sort_keys=True))
        return 0


def main() -> int:
    """CLI entry point."""
    settings = get_settings()
    configure_logging(level=settings.log_level, json_format=settings.log_json)
    cli = HRMSCli(settings)
    return cli.run()


if __name__ == "__main__":
    sys.exit(main())
