"""Command line entry point: render a trace file as text or JSON."""
from __future__ import annotations

import logging
import sys

from .config import build_trace, load_config_file
from .exceptions import exception_to_error
from .render import render_text
from .report import build_report
from .trace import XDebugTrace

_USAGE = """\
usage: xdebug-trace show FILE [--config CONFIG] [--json] [--stats] [--verbose]
       xdebug-trace validate-config CONFIG
"""


def _fail(exc: Exception) -> None:
    err = exception_to_error(exc)
    print(f"ERROR [{err['error_type']}]: {err['message']}", file=sys.stderr)
    sys.exit(1)


def _option(args: list[str], name: str) -> str | None:
    if name not in args:
        return None
    i = args.index(name)
    if i + 1 >= len(args):
        print(f"{name} needs a value\n\n{_USAGE}", file=sys.stderr)
        sys.exit(2)
    value = args[i + 1]
    del args[i:i + 2]
    return value


def _cmd_show(args: list[str]) -> None:
    config_path = _option(args, "--config")
    as_json = "--json" in args
    stats = "--stats" in args
    verbose = "--verbose" in args
    paths = [a for a in args if not a.startswith("--")]
    if len(paths) != 1:
        print(_USAGE, file=sys.stderr)
        sys.exit(2)

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        trace = build_trace(load_config_file(config_path)) if config_path else XDebugTrace()
        if stats:
            trace.enable_statistics(True, trace.sort_by)
        result = trace.parse_file(paths[0])
    except Exception as exc:
        _fail(exc)
        return

    if as_json:
        print(build_report(result).model_dump_json(indent=2))
    else:
        print(render_text(result))


def _cmd_validate_config(args: list[str]) -> None:
    if len(args) != 1:
        print(_USAGE, file=sys.stderr)
        sys.exit(2)
    try:
        build_trace(load_config_file(args[0]))
    except Exception as exc:
        _fail(exc)
        return
    print("OK")
    sys.exit(0)


def main() -> None:
    """Entry point for the xdebug-trace console script."""
    if len(sys.argv) >= 2:
        cmd = sys.argv[1]
        if cmd == "show":
            _cmd_show(sys.argv[2:])
            return
        if cmd == "validate-config":
            _cmd_validate_config(sys.argv[2:])
            return

    print(_USAGE, file=sys.stderr)
    sys.exit(2)


if __name__ == "__main__":
    main()
