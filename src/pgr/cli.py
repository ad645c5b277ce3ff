from __future__ import annotations

import argparse
import dataclasses
import sys
from functools import partial
from pathlib import Path
from typing import Never, Sequence

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text
from rich_argparse import RawTextRichHelpFormatter

from polyglot_runner import (
    DEFAULT_REGISTRY,
    ExecutionOutcome,
    SandboxPolicy,
    configure_logging,
    run_code,
)
from polyglot_runner.execution.capabilities import capabilities_for_language
from polyglot_runner.execution.normalizer import to_response
from polyglot_runner.execution.types import DEFAULT_LANGUAGE
from polyglot_runner.policy import resolve_policy

_CONSOLE = Console(no_color=False)
_STDIN = "-"


class _CLIHelpFormatter(RawTextRichHelpFormatter):
    """Rich formatter with explicit high-contrast CLI styles.

    Example:
        ```python
        parser = argparse.ArgumentParser(formatter_class=_CLIHelpFormatter)
        ```
    """

    styles = {
        "argparse.args": "bold cyan",
        "argparse.groups": "bold magenta",
        "argparse.help": "white",
        "argparse.metavar": "bold yellow",
        "argparse.prog": "bold bright_blue",
        "argparse.syntax": "bold bright_white",
        "argparse.text": "bright_white",
    }


_HELP_FORMATTER = partial(
    _CLIHelpFormatter,
    max_help_position=34,
    width=120,
)


class _RichArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that renders errors via Rich.

    Example:
        ```python
        parser = _RichArgumentParser(prog="pgr")
        ```
    """

    def error(self, message: str) -> Never:
        """Render parse errors with Rich and exit.

        Example:
            ```python
            # parser.error("invalid usage")
            ```
        """
        _CONSOLE.print(Panel.fit(f"[bold red]Error:[/bold red] {message}", border_style="red"))
        self.print_help()
        raise SystemExit(2)


def build_parser() -> argparse.ArgumentParser:
    """Build the CLI parser for running snippets and inspecting toolchains.

    Example:
        ```python
        parser = build_parser()
        ```
    """
    parser = _RichArgumentParser(
        prog="pgr",
        description=(
            "polyglot-runner CLI\n"
            "Run a source file in a throwaway workspace with a hard timeout.\n"
            "Supported languages: " + ", ".join(DEFAULT_REGISTRY.supported())
        ),
        epilog=(
            "Quick Examples:\n"
            "  pgr run hello.py\n"
            "  pgr run Main.java --timeout-seconds 5\n"
            "  echo 'console.log(42)' | pgr run - --language javascript\n"
            "  pgr run solution.cpp --json\n"
            "  pgr languages"
        ),
        formatter_class=_HELP_FORMATTER,
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        help="Logging level for sandbox diagnostics on stderr (default: WARNING).",
    )

    sub = parser.add_subparsers(
        dest="command",
        required=True,
        parser_class=_RichArgumentParser,
    )

    run_cmd = sub.add_parser(
        "run",
        help="Build (if needed) and run one source file.",
        description=(
            "Run a source file, or stdin when the path is '-'.\n"
            "The language is inferred from the file extension unless --language is given."
        ),
        epilog=(
            "Examples:\n"
            "  pgr run main.c\n"
            "  pgr run - --language python < snippet.py"
        ),
        formatter_class=_HELP_FORMATTER,
    )
    run_cmd.add_argument("source", help="Path to the source file, or '-' to read stdin.")
    run_cmd.add_argument(
        "--language",
        "-l",
        help="Language id or alias, e.g. python, javascript, c++ (stdin defaults to python).",
    )
    run_cmd.add_argument(
        "--timeout-seconds",
        type=int,
        help="Override the policy timeout shared by compile and run.",
    )
    run_cmd.add_argument(
        "--policy-file",
        help="Path to a TOML policy file with a [policy] table.",
    )
    run_cmd.add_argument(
        "--json",
        action="store_true",
        help="Print the response payload as JSON instead of panels.",
    )

    sub.add_parser(
        "languages",
        help="List supported languages and whether their toolchains are installed.",
        description=(
            "Probe PATH for every registered toolchain.\n"
            "Missing binaries make that language fail at execution time."
        ),
        formatter_class=_HELP_FORMATTER,
    )

    return parser


def _read_source(source: str) -> str:
    """Read the program text from a path or stdin.

    Example:
        ```python
        code = _read_source("hello.py")
        ```
    """
    if source == _STDIN:
        return sys.stdin.read()
    return Path(source).read_text(encoding="utf-8")


def _infer_language(source: str, language: str | None) -> str:
    """Pick the explicit language, else infer it from the file suffix; stdin defaults to python.

    Example:
        ```python
        _infer_language("Main.java", None)
        ```
    """
    if language:
        return language
    if source == _STDIN:
        return DEFAULT_LANGUAGE
    return DEFAULT_REGISTRY.for_extension(Path(source).suffix).language_id


def _build_policy(args: argparse.Namespace) -> SandboxPolicy:
    """Resolve the policy file and apply command-line overrides.

    Example:
        ```python
        policy = _build_policy(args)
        ```
    """
    policy = resolve_policy(None, args.policy_file)
    if args.timeout_seconds is not None:
        policy = dataclasses.replace(
            policy, timeout_seconds=args.timeout_seconds, config_path=None
        )
    return policy


def _print_outcome(outcome: ExecutionOutcome) -> None:
    """Render an execution outcome as Rich panels.

    Example:
        ```python
        _print_outcome(outcome)
        ```
    """
    if outcome.stdout:
        _CONSOLE.print(
            Panel(Text(outcome.stdout.rstrip("\n")), title="Output", border_style="cyan")
        )
    if outcome.stderr:
        _CONSOLE.print(
            Panel(Text(outcome.stderr.rstrip("\n")), title="Error", border_style="red")
        )
    style = "bold green" if outcome.ok else "bold red"
    _CONSOLE.print(
        f"[{style}]{outcome.status.value}[/{style}] "
        f"language={outcome.language} time={outcome.wall_clock_ms}ms "
        f"memory={outcome.memory_estimate}",
        highlight=False,
    )


def _print_languages() -> None:
    """Render registered toolchains and their availability in a rich table.

    Example:
        ```python
        _print_languages()
        ```
    """
    table = Table(title="Supported Languages")
    table.add_column("Language", style="cyan")
    table.add_column("Aliases", style="magenta")
    table.add_column("Extension")
    table.add_column("Compiled")
    table.add_column("Binaries")
    table.add_column("Available")
    for spec in DEFAULT_REGISTRY:
        caps = capabilities_for_language(spec)
        available = "[green]yes[/green]" if caps.available else (
            "[red]missing: " + ", ".join(caps.missing) + "[/red]"
        )
        table.add_row(
            spec.language_id,
            ", ".join(spec.aliases) or "-",
            spec.source_extension,
            "yes" if spec.needs_compile else "no",
            ", ".join(caps.binaries),
            available,
        )
    _CONSOLE.print(table)


def main(argv: Sequence[str] | None = None) -> int:
    """Run the `pgr` CLI command handler.

    Example:
        ```python
        code = main(["run", "hello.py"])
        ```
    """
    parser = build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    configure_logging(args.log_level)

    if args.command == "languages":
        _print_languages()
        return 0
    if args.command == "run":
        try:
            language = _infer_language(args.source, args.language)
            code = _read_source(args.source)
            policy = _build_policy(args)
        except (OSError, ValueError, LookupError) as exc:
            _CONSOLE.print(Panel.fit(Text(str(exc)), title="Error", style="bold red"))
            return 1
        if not code.strip():
            _CONSOLE.print(Panel.fit("Code is required", title="Error", style="bold red"))
            return 1
        outcome = run_code(code, language, policy=policy)
        if args.json:
            _CONSOLE.print_json(data=to_response(outcome))
        else:
            _print_outcome(outcome)
        return 0 if outcome.ok else 1

    parser.error("Unhandled command")
