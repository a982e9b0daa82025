"""build-keeper command line interface."""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path

from .config import DEFAULT_CONFIG_FILE, BuildKeeperSettings, ConfigurationError, load_settings
from .engine import RetentionEngine
from .hooks import BuildHook, discover_asset_files, read_manifest


def configure_logging(level: str) -> None:
    """Configure root logging for the command line."""

    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="[%(asctime)s] [%(levelname)s] %(name)s: %(message)s",
    )


def load_cli_settings(args: argparse.Namespace) -> BuildKeeperSettings:
    config_file = args.config
    if config_file is None and DEFAULT_CONFIG_FILE.exists():
        config_file = DEFAULT_CONFIG_FILE
    try:
        return load_settings(
            config_file,
            output_root=args.output_root,
            ledger_path=args.ledger_path,
            max_versions=args.max_versions,
            asset_prefix=args.asset_prefix,
            verbose=False if args.quiet else None,
        )
    except ConfigurationError as exc:
        print(f"Invalid configuration: {exc}")
        raise SystemExit(2)


def cmd_run(args: argparse.Namespace) -> None:
    settings = load_cli_settings(args)
    configure_logging(settings.log_level)
    if not settings.enabled:
        print("build-keeper is disabled; nothing to do")
        return

    if args.manifest is not None:
        try:
            names = read_manifest(args.manifest)
        except (OSError, ValueError) as exc:
            print(f"Unable to read manifest: {exc}")
            raise SystemExit(1)
    elif args.scan:
        names = discover_asset_files(settings.output_root, settings.asset_prefix)
    else:
        names = list(args.files)

    hook = BuildHook(settings)
    hook.build_start()
    hook.generate_bundle(names)
    result = hook.close_bundle_sync()
    if result is None:
        print("Version management failed; see log output")
        raise SystemExit(1)

    if args.json:
        print(json.dumps(result.as_dict(), indent=2))
    else:
        print(
            f"{result.version_id}: {result.file_count} file(s), "
            f"{result.total_versions}/{settings.max_versions} version(s), "
            f"{result.deleted_count} deleted"
        )
        for warning in result.warnings:
            print(f"warning: {warning}")


def cmd_versions(args: argparse.Namespace) -> None:
    settings = load_cli_settings(args)
    configure_logging(settings.log_level)
    versions = RetentionEngine(settings).describe_versions()
    if args.json:
        print(json.dumps(versions, indent=2))
        return

    print(f"Total versions: {len(versions)}/{settings.max_versions}")
    for version in versions:
        print(
            f"  {version['index']}. {version['id']} ({version['created_at']}) "
            f"- assets: {version['asset_files']} file(s)"
        )


def cmd_reset(args: argparse.Namespace) -> None:
    settings = load_cli_settings(args)
    configure_logging(settings.log_level)
    engine = RetentionEngine(settings)
    if engine.reset():
        print(f"Deleted version ledger {settings.ledger_path}")
    else:
        print(f"No version ledger removed at {settings.ledger_path}")


def build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--config", type=Path, help="YAML options file")
    common.add_argument("--output-root", help="Build output directory")
    common.add_argument("--ledger-path", help="Version ledger file")
    common.add_argument("--max-versions", type=int, help="Number of builds to retain (1-100)")
    common.add_argument("--asset-prefix", help="Output-relative prefix of managed assets")
    common.add_argument("--quiet", action="store_true", help="Only log the cycle summary")

    parser = argparse.ArgumentParser(description="Keep recent build assets and collect the rest")
    sub = parser.add_subparsers(dest="cmd")

    p_run = sub.add_parser("run", parents=[common], help="Record a build and collect stale assets")
    p_run.add_argument("files", nargs="*", help="Generated files relative to the output root")
    source = p_run.add_mutually_exclusive_group()
    source.add_argument("--manifest", type=Path, help="Read generated files from a bundler manifest")
    source.add_argument("--scan", action="store_true", help="Treat every file under the asset directory as generated")
    p_run.add_argument("--json", action="store_true", help="Output JSON")
    p_run.set_defaults(func=cmd_run)

    p_versions = sub.add_parser("versions", parents=[common], help="List retained versions")
    p_versions.add_argument("--json", action="store_true", help="Output JSON")
    p_versions.set_defaults(func=cmd_versions)

    p_reset = sub.add_parser("reset", parents=[common], help="Delete the version ledger")
    p_reset.set_defaults(func=cmd_reset)

    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not hasattr(args, "func"):
        parser.print_help()
        return
    args.func(args)


if __name__ == "__main__":
    main()
