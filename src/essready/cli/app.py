"""essready Typer CLI entrypoint."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console

from essready.cli.commands import config as config_command
from essready.cli.commands import probe as probe_command
from essready.cli.commands import run as run_command

PROJECT_ROOT = Path(__file__).resolve().parents[3]
DISTRIBUTION_NAME = "essready"

stderr_console = Console(stderr=True)
stdout_console = Console(stderr=False)

app = typer.Typer(
    help="Pre-upgrade readiness checks for ESS and WFE installations",
    rich_markup_mode="rich",
    no_args_is_help=True,
)


config_command.register(app, stdout_console=stdout_console)
probe_command.register(app, stdout_console=stdout_console)
run_command.register(app, stdout_console=stdout_console, stderr_console=stderr_console)


@app.command(help="Show the installed essready package version.")
def version() -> None:
    """Print the version discovered from the package metadata."""
    from importlib import metadata

    try:
        resolved_version = metadata.version(DISTRIBUTION_NAME)
    except metadata.PackageNotFoundError:
        pyproject = PROJECT_ROOT / "pyproject.toml"
        if not pyproject.exists():
            stdout_console.print("Version information unavailable")
            return
        import tomllib

        data = tomllib.loads(pyproject.read_text(encoding="utf-8"))
        resolved_version = data.get("project", {}).get("version", "unknown")
    stdout_console.print(resolved_version)


@app.command(help="Print the essready README to standard output.")
def readme() -> None:
    """Display the project README for quick reference."""
    readme_path = PROJECT_ROOT / "README.md"
    if not readme_path.exists():
        raise typer.BadParameter("README.md not found in project root")
    stdout_console.print(readme_path.read_text(encoding="utf-8"), markup=False)


def main(argv: list[str] | None = None) -> None:
    app(args=argv, prog_name=DISTRIBUTION_NAME)


__all__ = ["app", "main", "stdout_console", "stderr_console"]
