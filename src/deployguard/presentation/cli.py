"""deployguard command-line interface.

Every subcommand prints one JSON document on stdout and exits 0 on success,
1 on any unsuccessful result, 2 on usage errors.  Logs go to stderr.

Examples::

    deployguard deploy --override weather node ./weather-server.js
    deployguard scan ./server.py --project-root .
    deployguard policy set minimumScore=90 strictMode=true
    deployguard restore registry-backup-20250101T000000000000Z-000.json
"""
from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import Any

import structlog

from deployguard import __version__
from deployguard.application.service import DeployGuardService
from deployguard.config import Settings, get_settings
from deployguard.engine.orchestrator.deployment import DeployOptions
from deployguard.infrastructure.logging import setup_logging
from deployguard.shared.exceptions import DeployGuardError

logger = structlog.get_logger(__name__)


def _key_value(raw: str) -> tuple[str, str]:
    key, sep, value = raw.partition("=")
    if not sep or not key:
        raise argparse.ArgumentTypeError(f"expected KEY=VALUE, got {raw!r}")
    return key, value


def _policy_value(raw: str) -> Any:
    try:
        return json.loads(raw)
    except ValueError:
        return raw


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="deployguard", description="Protected service registry manager")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--registry", help="registry file (overrides DEPLOYGUARD_REGISTRY_PATH)")
    parser.add_argument("--log-level", help="log level (overrides DEPLOYGUARD_LOG_LEVEL)")
    parser.add_argument("--log-json", action="store_true", help="emit JSON log lines")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("deploy", help="add or replace a registry entry")
    p.add_argument("--env", action="append", type=_key_value, default=[], metavar="KEY=VALUE")
    p.add_argument("--auto-approve", action="append", default=None, metavar="CAPABILITY")
    p.add_argument("--disabled", action="store_true")
    p.add_argument("--override", action="store_true", help="replace an existing entry of the same name")
    p.add_argument("--executable-path", help="file to scan instead of the inferred one")
    p.add_argument("--project-root", help="project tree to include in the scan")
    p.add_argument("name")
    p.add_argument("launch", metavar="command")
    p.add_argument("args", nargs=argparse.REMAINDER)

    p = sub.add_parser("remove", help="remove a registry entry")
    p.add_argument("name")

    sub.add_parser("list", help="list registry entries")

    p = sub.add_parser("scan", help="scan a candidate executable")
    p.add_argument("path")
    p.add_argument("--project-root")

    p = sub.add_parser("backup", help="snapshot the registry")
    p.add_argument("--comment")

    sub.add_parser("backups", help="list registry snapshots")

    p = sub.add_parser("restore", help="restore the registry from a snapshot")
    p.add_argument("backup_name")

    p = sub.add_parser("policy", help="show or change the global security policy")
    policy_sub = p.add_subparsers(dest="policy_command", required=True)
    policy_sub.add_parser("show")
    ps = policy_sub.add_parser("set")
    ps.add_argument("changes", nargs="+", type=_key_value, metavar="FIELD=VALUE")
    pe = policy_sub.add_parser("enable")
    pe.add_argument("--strict", action="store_true")
    policy_sub.add_parser("disable")

    sub.add_parser("validate", help="validate the live registry")
    sub.add_parser("status", help="show registry and backup status")

    p = sub.add_parser("discover", help="list candidate server files in a directory")
    p.add_argument("directory")

    p = sub.add_parser("build-check", help="scan, build and rescan a project")
    p.add_argument("project_dir")
    p.add_argument("--build-command")
    p.add_argument("--output-dir", default="dist")

    return parser


async def _dispatch(service: DeployGuardService, args: argparse.Namespace) -> tuple[bool, dict[str, Any]]:
    cmd = args.command
    if cmd == "deploy":
        result = await service.deploy(
            name=args.name,
            command=args.launch,
            args=args.args[1:] if args.args[:1] == ["--"] else args.args,
            env=dict(args.env) or None,
            disabled=args.disabled,
            auto_approve=args.auto_approve,
            options=DeployOptions(
                override=args.override,
                executable_path=args.executable_path,
                project_root=args.project_root,
            ),
        )
        return result.success, result.to_dict()
    if cmd == "remove":
        result = await service.remove(args.name)
        return result.success, result.to_dict()
    if cmd == "list":
        result = await service.list_entries()
        return result.success, result.to_dict()
    if cmd == "scan":
        scan = await service.scan(args.path, args.project_root)
        return scan.passed, scan.model_dump(mode="json")
    if cmd == "backup":
        result = await service.backup(args.comment)
        return result.success, result.to_dict()
    if cmd == "backups":
        result = await service.list_backups()
        return result.success, result.to_dict()
    if cmd == "restore":
        result = await service.restore(args.backup_name)
        return result.success, result.to_dict()
    if cmd == "policy":
        if args.policy_command == "show":
            result = await service.policy_status()
        elif args.policy_command == "set":
            result = await service.set_policy({k: _policy_value(v) for k, v in args.changes})
        elif args.policy_command == "enable":
            result = await service.enable_policy(strict=args.strict)
        else:
            result = await service.disable_policy()
        return result.success, result.to_dict()
    if cmd == "validate":
        result = await service.validate()
        return result.success, result.to_dict()
    if cmd == "status":
        result = await service.status()
        return result.success, result.to_dict()
    if cmd == "discover":
        result = await service.discover(args.directory)
        return result.success, result.to_dict()
    if cmd == "build-check":
        report = await service.build_check(args.project_dir, args.build_command, args.output_dir)
        return report.passed, report.model_dump(mode="json")
    raise ValueError(f"unknown command {cmd!r}")


def _settings_for(args: argparse.Namespace) -> Settings:
    settings = get_settings()
    overrides: dict[str, Any] = {}
    if args.registry:
        overrides["registry_path"] = args.registry
    if args.log_level:
        overrides["log_level"] = args.log_level
    if args.log_json:
        overrides["log_json"] = True
    if overrides:
        settings = Settings(**{**settings.model_dump(), **overrides})
    return settings


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = _settings_for(args)
    setup_logging(level=settings.log_level, json_output=settings.log_json, log_file=settings.log_file)
    service = DeployGuardService(settings)

    try:
        ok, payload = asyncio.run(_dispatch(service, args))
    except DeployGuardError as exc:
        logger.error("command_failed", command=args.command, error_code=exc.error_code, error=exc.message)
        ok, payload = False, {"success": False, "error": exc.to_dict()}

    json.dump(payload, sys.stdout, indent=2, default=str)
    sys.stdout.write("\n")
    return 0 if ok else 1


if __name__ == "__main__":
    sys.exit(main())
