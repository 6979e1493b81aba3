"""CLI entrypoints for introspect commands."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Dict, List

from .analyzers.dependencies import build_dependency_graph
from .config import OUTPUT_FORMATS, ConfigError, IntrospectConfig, load_config
from .formatters import format_fixes, format_summary, format_todos, format_validation
from .generator import StubGenerator
from .hasher import get_hash_info, stamp
from .logging import LOG_FORMATS, configure_logging, get_logger
from .rules import get_rule_registry, load_plugin_rules
from .scanner import SourceDirectoryError, discover_files, expand_targets
from .stores import IntrospectionRegistry
from .validator import Validator

_EXIT_FAILED = 1
_EXIT_USAGE = 2


def _add_verbose_option(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    kwargs: dict[str, object] = {
        "action": "store_true",
        "help": "Show extraction fallbacks and rule diagnostics.",
    }
    if suppress_default:
        kwargs["default"] = argparse.SUPPRESS
    else:
        kwargs["default"] = False
    parser.add_argument(
        "-v",
        "--verbose",
        **kwargs,
    )


def _add_config_option(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config",
        default=None,
        help="Configuration file or project directory (defaults to the current directory).",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="introspect",
        description="Check and report on __metadata declarations in TypeScript sources.",
    )
    _add_verbose_option(parser)
    parser.add_argument("-q", "--quiet", action="store_true", help="Only log warnings and errors.")
    parser.add_argument(
        "--log-format",
        choices=LOG_FORMATS,
        default=None,
        help="Log line format (defaults to pretty on a terminal, json otherwise).",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    lint_parser = subparsers.add_parser("lint", help="Validate metadata against the configured rules.")
    _add_verbose_option(lint_parser, suppress_default=True)
    _add_config_option(lint_parser)
    lint_parser.add_argument(
        "files",
        nargs="*",
        help="Files or directories to check (defaults to the configured source directory).",
    )
    lint_parser.add_argument("--format", choices=OUTPUT_FORMATS, default=None, help="Output format.")
    lint_parser.add_argument(
        "--strict",
        action="store_true",
        default=None,
        help="Fail when any warning is reported.",
    )
    lint_parser.add_argument("--jobs", type=int, default=None, help="Number of worker threads.")

    report_parser = subparsers.add_parser("report", help="Summarize metadata across the source tree.")
    _add_verbose_option(report_parser, suppress_default=True)
    _add_config_option(report_parser)
    report_parser.add_argument(
        "--format",
        choices=("pretty", "json", "markdown"),
        default="pretty",
        help="Output format.",
    )
    report_parser.add_argument("--todos", action="store_true", help="List open todos by priority.")
    report_parser.add_argument("--fixes", action="store_true", help="List open fixes by severity.")
    report_parser.add_argument("--status", default=None, help="List modules with this status.")
    report_parser.add_argument("--tag", default=None, help="List modules carrying this tag.")
    report_parser.add_argument("--search", default=None, help="Search module keys and descriptions.")

    deps_parser = subparsers.add_parser("deps", help="Show internal module dependencies.")
    _add_verbose_option(deps_parser, suppress_default=True)
    _add_config_option(deps_parser)
    deps_parser.add_argument("module", nargs="?", default=None, help="Module key to inspect.")
    deps_parser.add_argument("--cycles", action="store_true", help="Report circular dependencies.")
    deps_parser.add_argument("--unused", action="store_true", help="Report modules nothing imports.")
    deps_parser.add_argument("--json", action="store_true", help="Emit JSON.")

    hash_parser = subparsers.add_parser("hash", help="Show or refresh stored content hashes.")
    _add_verbose_option(hash_parser, suppress_default=True)
    hash_parser.add_argument("files", nargs="+", help="Files to fingerprint.")
    hash_parser.add_argument(
        "--write",
        action="store_true",
        help="Rewrite each stored contentHash with the current fingerprint.",
    )

    generate_parser = subparsers.add_parser(
        "generate", help="Insert metadata stubs into files that do not declare __metadata."
    )
    _add_verbose_option(generate_parser, suppress_default=True)
    _add_config_option(generate_parser)
    generate_parser.add_argument(
        "files",
        nargs="*",
        help="Files or directories to update (defaults to the configured source directory).",
    )
    generate_parser.add_argument("--author", default="TODO", help="Author for the initial changelog entry.")
    generate_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="List the files that would receive a stub without writing them.",
    )

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP service.")
    _add_verbose_option(serve_parser, suppress_default=True)
    serve_parser.add_argument("--host", default="127.0.0.1", help="Interface to bind.")
    serve_parser.add_argument("--port", type=int, default=8000, help="Port to listen on.")

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for introspect commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(verbose=bool(args.verbose), quiet=args.quiet, log_format=args.log_format)
    logger = get_logger("cli")

    status = 0
    try:
        if args.command == "lint":
            status = _run_lint(args)
        elif args.command == "report":
            status = _run_report(args)
        elif args.command == "deps":
            status = _run_deps(args)
        elif args.command == "hash":
            status = _run_hash(args)
        elif args.command == "generate":
            status = _run_generate(args)
        elif args.command == "serve":
            from .service import run_service

            run_service(host=args.host, port=args.port)
        else:  # pragma: no cover - argparse enforces choices
            parser.exit(_EXIT_USAGE, "Unknown command\n")
    except (ConfigError, SourceDirectoryError) as exc:
        logger.debug("Command %s aborted", args.command, exc_info=True)
        parser.exit(_EXIT_USAGE, f"introspect {args.command} failed: {exc}\n")
    if status:
        parser.exit(status)


def _load(args: argparse.Namespace, **overrides: object) -> IntrospectConfig:
    return load_config(args.config, **overrides)


def _run_lint(args: argparse.Namespace) -> int:
    config = _load(
        args,
        output_format=args.format,
        strict_mode=args.strict,
        jobs=args.jobs,
    )
    registry = get_rule_registry()
    load_plugin_rules(registry)
    validator = Validator(config, rule_registry=registry)
    files = [Path(item) for item in args.files] if args.files else None
    result = validator.validate(files)
    print(format_validation(result, config.output_format))
    return 0 if result.passed else _EXIT_FAILED


def _run_report(args: argparse.Namespace) -> int:
    config = _load(args)
    registry = IntrospectionRegistry()
    registry.load_all(config.source_path, include=config.include, exclude=config.exclude)
    errors = registry.errors
    if not registry.is_loaded and errors:
        raise SourceDirectoryError(errors[0].error)
    for error in errors:
        print(f"warning: could not load {error.file}: {error.error}", file=sys.stderr)

    if args.status or args.tag or args.search is not None:
        if args.status:
            records = registry.by_status(args.status)
        elif args.tag:
            records = registry.by_tag(args.tag)
        else:
            records = registry.search(args.search)
        if args.format == "json":
            print(json.dumps([record.to_dict() for record in records], indent=2))
        else:
            for record in records:
                print(f"{record.module}: {record.description}")
        return 0

    todos = registry.all_todos()
    fixes = registry.all_fixes()
    item_format = "json" if args.format == "json" else "pretty"
    if args.todos and not args.fixes:
        print(format_todos(todos, item_format))
        return 0
    if args.fixes and not args.todos:
        print(format_fixes(fixes, item_format))
        return 0
    show_items = (args.todos and args.fixes) or args.format == "markdown"
    print(
        format_summary(
            registry.summary(),
            args.format,
            todos=todos if show_items else (),
            fixes=fixes if show_items else (),
        )
    )
    return 0


def _run_deps(args: argparse.Namespace) -> int:
    config = _load(args)
    graph = build_dependency_graph(config.source_path, include=config.include, exclude=config.exclude)

    payload: Dict[str, Any]
    if args.module:
        if args.module not in graph.uses:
            print(f"Module not found: {args.module}", file=sys.stderr)
            return _EXIT_FAILED
        payload = {
            "module": args.module,
            "uses": graph.get_uses(args.module),
            "usedBy": graph.get_used_by(args.module),
        }
    elif args.cycles:
        payload = {"cycles": graph.find_cycles()}
    elif args.unused:
        payload = {"unused": graph.unused_modules()}
    else:
        payload = {"graph": graph.uses}

    if args.json:
        print(json.dumps(payload, indent=2))
    else:
        for line in _deps_lines(payload):
            print(line)
    return 0


def _deps_lines(payload: Dict[str, Any]) -> List[str]:
    if "module" in payload:
        lines = [payload["module"], "  uses:"]
        lines.extend(f"    {dep}" for dep in payload["uses"] or ["(none)"])
        lines.append("  used by:")
        lines.extend(f"    {user}" for user in payload["usedBy"] or ["(none)"])
        return lines
    if "cycles" in payload:
        if not payload["cycles"]:
            return ["No circular dependencies"]
        return [" -> ".join(cycle) for cycle in payload["cycles"]]
    if "unused" in payload:
        if not payload["unused"]:
            return ["No unused modules"]
        return list(payload["unused"])
    return [f"{module}: {', '.join(deps) if deps else '(none)'}" for module, deps in payload["graph"].items()]


def _run_hash(args: argparse.Namespace) -> int:
    status = 0
    for item in args.files:
        path = Path(item)
        if not path.is_file():
            print(f"{path}: file not found", file=sys.stderr)
            status = _EXIT_FAILED
            continue
        if args.write:
            content = path.read_text(encoding="utf-8")
            updated = stamp(content, path=str(path))
            if updated != content:
                path.write_text(updated, encoding="utf-8")
        info = get_hash_info(path)
        if info.stored_hash is None:
            state = "missing"
        elif info.changed:
            state = "stale"
        else:
            state = "ok"
        print(f"{path}: {info.current_hash} (stored: {info.stored_hash or '-'}) {state}")
    return status


def _run_generate(args: argparse.Namespace) -> int:
    config = _load(args)
    if args.files:
        targets = expand_targets([Path(item) for item in args.files], config.include, config.exclude)
    else:
        targets = discover_files(config.source_path, config.include, config.exclude)
    generator = StubGenerator(config.source_path, author=args.author)
    generated = skipped = 0
    status = 0
    for path in targets:
        try:
            stub = generator.generate_file(path, write=not args.dry_run)
        except (OSError, UnicodeDecodeError) as exc:
            print(f"{path}: could not update ({exc})", file=sys.stderr)
            status = _EXIT_FAILED
            continue
        if stub is None:
            skipped += 1
            continue
        generated += 1
        print(f"{'Would generate' if args.dry_run else 'Generated'}: {path} ({stub.module})")
    print(f"{generated} stub(s) {'pending' if args.dry_run else 'written'}, {skipped} file(s) already declared")
    return status


if __name__ == "__main__":
    main(sys.argv[1:])
