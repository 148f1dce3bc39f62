"""Command-line entry point.

Usage:
    libprovision install [--skip-if-current] [--print-export]
    libprovision show-config
"""

from __future__ import annotations

import argparse
import dataclasses
import sys
from collections.abc import Sequence
from pathlib import Path

from libprovision.builders import CMakeBuilder
from libprovision.config import load_config, serialize_config
from libprovision.errors import ProvisionError, ToolError, ValidationError
from libprovision.models import BuildTarget, OptionValue, PipelineConfig, SourceReference
from libprovision.observability import console_logger
from libprovision.pipeline import Pipeline
from libprovision.policy import MUTABLE_REF_POLICIES, Policy


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="libprovision",
        description="Fetch, build and stage a native shared library for local use.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    install_p = sub.add_parser("install", help="Fetch, build, stage and register the library")
    _add_config_arguments(install_p)
    install_p.add_argument("--jobs", type=int, default=None, help="Parallel build jobs")
    install_p.add_argument("--cmake", default="cmake", help="CMake executable to invoke")
    install_p.add_argument("--offline", action="store_true", help="Refuse network access")
    install_p.add_argument(
        "--mutable-ref-policy",
        choices=MUTABLE_REF_POLICIES,
        default="warn",
        help="How to treat revisions that are not full commit ids",
    )
    install_p.add_argument(
        "--skip-if-current",
        action="store_true",
        help="Skip fetch and build when the installed artifacts match the receipt",
    )
    install_p.add_argument("--log-json", default=None, help="Write structured logs as JSON lines")
    install_p.add_argument(
        "--print-export",
        action="store_true",
        help="Print the shell export line for the updated search path",
    )

    show_p = sub.add_parser("show-config", help="Print the effective configuration as JSON")
    _add_config_arguments(show_p)
    return parser


def _add_config_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--config", default=None, help="JSON configuration file")
    parser.add_argument("--repo", default=None, help="Repository URL")
    parser.add_argument("--revision", default=None, help="Branch, tag or commit to fetch")
    parser.add_argument("--depth", type=int, default=None, help="Clone depth")
    parser.add_argument("--working-tree", default=None, help="Directory to clone and build in")
    parser.add_argument("--install-dir", default=None, help="Installation directory")
    parser.add_argument("--target", default=None, help="Build target name")
    parser.add_argument(
        "--artifact",
        action="append",
        default=None,
        help="Artifact path relative to the working tree (repeatable)",
    )
    parser.add_argument(
        "--option",
        action="append",
        default=None,
        metavar="KEY=VALUE",
        help="Build option override (repeatable); ON/OFF/true/false become booleans",
    )


def resolve_config(args: argparse.Namespace) -> PipelineConfig:
    config = load_config(args.config) if args.config else PipelineConfig.default()

    source = config.source
    if args.repo is not None or args.revision is not None or args.depth is not None:
        source = SourceReference(
            repo=args.repo if args.repo is not None else source.repo,
            revision=args.revision if args.revision is not None else source.revision,
            depth=args.depth if args.depth is not None else source.depth,
        )

    target = config.target
    if args.target is not None or args.option:
        options = dict(target.options)
        options.update(_parse_options(args.option or []))
        target = BuildTarget(
            name=args.target if args.target is not None else target.name,
            options=options,
        )

    return dataclasses.replace(
        config,
        source=source,
        target=target,
        artifacts=tuple(args.artifact) if args.artifact else config.artifacts,
        working_tree=Path(args.working_tree) if args.working_tree else config.working_tree,
        install_dir=Path(args.install_dir).expanduser() if args.install_dir else config.install_dir,
    )


def _parse_options(raw_options: Sequence[str]) -> dict[str, OptionValue]:
    parsed: dict[str, OptionValue] = {}
    for raw in raw_options:
        key, sep, value = raw.partition("=")
        if not sep or not key:
            raise ValidationError(
                "Build options must be given as KEY=VALUE.",
                context={"option": raw},
            )
        lowered = value.lower()
        if lowered in ("on", "true", "yes"):
            parsed[key] = True
        elif lowered in ("off", "false", "no"):
            parsed[key] = False
        else:
            parsed[key] = value
    return parsed


def cmd_install(args: argparse.Namespace) -> int:
    config = resolve_config(args)
    logger = console_logger()
    pipeline = Pipeline(
        config=config,
        builder=CMakeBuilder(tool=args.cmake, jobs=args.jobs),
        policy=Policy(
            mutable_ref_policy=args.mutable_ref_policy,
            network_mode="offline" if args.offline else "online",
        ),
        logger=logger,
        skip_if_current=args.skip_if_current,
    )
    try:
        result = pipeline.run()
    except ProvisionError as exc:
        _report_failure(exc)
        return exc.exit_code
    finally:
        if args.log_json:
            logger.to_json_lines(args.log_json)

    installed = result.staged[-1].name if result.staged else "artifacts"
    print(f"{installed} installed in {result.install_dir}/")
    if args.print_export and result.export_line:
        print(result.export_line)
    return 0


def cmd_show_config(args: argparse.Namespace) -> int:
    sys.stdout.write(serialize_config(resolve_config(args)))
    return 0


def _report_failure(exc: ProvisionError) -> None:
    if isinstance(exc, ToolError):
        if exc.stdout:
            sys.stderr.write(exc.stdout if exc.stdout.endswith("\n") else exc.stdout + "\n")
        if exc.stderr:
            sys.stderr.write(exc.stderr if exc.stderr.endswith("\n") else exc.stderr + "\n")
    stage = exc.failed_stage or "pipeline"
    print(f"error: {stage} failed: {exc.message}", file=sys.stderr)
    if exc.hint:
        print(f"hint: {exc.hint}", file=sys.stderr)


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        if args.command == "install":
            return cmd_install(args)
        if args.command == "show-config":
            return cmd_show_config(args)
    except ValidationError as exc:
        _report_failure(exc)
        return exc.exit_code
    parser.error(f"unknown command: {args.command}")
    return 2


if __name__ == "__main__":
    sys.exit(main())
