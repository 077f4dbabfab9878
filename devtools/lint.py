"""Run the goalloop lint suite: codespell, ruff, basedpyright.

    python devtools/lint.py           # fix what can be fixed
    python devtools/lint.py --check   # CI mode, never rewrites files
"""

import subprocess
import sys

from funlog import log_calls
from rich import get_console, reconfigure
from rich import print as rprint

SRC_PATHS = ["src", "tests", "devtools", "scripts"]
# Tests are left out of type checking; fixtures and fakes are deliberately loose.
TYPECHECK_PATHS = ["src", "devtools", "scripts"]
DOC_PATHS = ["README.md"]


reconfigure(emoji=not get_console().options.legacy_windows)


def lint_commands(check_only: bool) -> list[list[str]]:
    if check_only:
        return [
            ["codespell", *SRC_PATHS, *DOC_PATHS],
            ["ruff", "check", *SRC_PATHS],
            ["ruff", "format", "--check", *SRC_PATHS],
            ["basedpyright", "--stats", *TYPECHECK_PATHS],
        ]
    return [
        ["codespell", "--write-changes", *SRC_PATHS, *DOC_PATHS],
        ["ruff", "check", "--fix", *SRC_PATHS],
        ["ruff", "format", *SRC_PATHS],
        ["basedpyright", "--stats", *TYPECHECK_PATHS],
    ]


def main() -> int:
    check_only = "--check" in sys.argv[1:]
    rprint()

    errcount = sum(run(cmd) for cmd in lint_commands(check_only))

    rprint()
    if errcount != 0:
        rprint(f"[bold red]:x: Lint failed with {errcount} errors.[/bold red]")
    else:
        rprint("[bold green]:white_check_mark: Lint passed![/bold green]")
    rprint()

    return errcount


@log_calls(level="warning", show_timing_only=True)
def run(cmd: list[str]) -> int:
    rprint()
    rprint(f"[bold green]>> {' '.join(cmd)}[/bold green]")
    try:
        subprocess.run(cmd, text=True, check=True)
    except KeyboardInterrupt:
        rprint("[yellow]Keyboard interrupt - Cancelled[/yellow]")
        return 1
    except subprocess.CalledProcessError as e:
        rprint(f"[bold red]Error: {e}[/bold red]")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
