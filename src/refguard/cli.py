"""refguard CLI entry point."""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path

import click

from refguard import __version__


@click.group()
@click.version_option(version=__version__, prog_name="refguard")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Minimal output (errors only).")
@click.pass_context
def main(ctx: click.Context, *, verbose: bool, quiet: bool) -> None:
    """refguard - enforce dependency rules over project and package references."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    _configure_logging(verbose=verbose, quiet=quiet)


def _configure_logging(*, verbose: bool, quiet: bool) -> None:
    """Send ``refguard`` log records to stderr through Rich, once per process."""
    from rich.console import Console
    from rich.logging import RichHandler

    level = logging.WARNING
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.ERROR

    package_logger = logging.getLogger("refguard")
    package_logger.setLevel(level)
    if not any(isinstance(h, RichHandler) for h in package_logger.handlers):
        package_logger.addHandler(
            RichHandler(console=Console(stderr=True), show_time=False, show_path=False)
        )


# refguard:domain=check
@main.command()
@click.option("--unit", required=True, help="Identifier of the project under analysis.")
@click.option(
    "--rules",
    "rules_file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Dependency rules file (overrides refguard.yml).",
)
@click.option(
    "--references",
    "references_file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Declared references file (overrides refguard.yml).",
)
@click.option(
    "--project",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=None,
    help="Project root holding refguard.yml (default: current directory).",
)
@click.option(
    "--format",
    "fmt",
    type=click.Choice(["rich", "json", "porcelain"]),
    default=None,
    help="Output format (default: rich if TTY, porcelain if piped).",
)
@click.option(
    "--strict",
    is_flag=True,
    default=False,
    help="Exit 1 if warnings found.",
)
def check(
    *,
    unit: str,
    rules_file: Path | None,
    references_file: Path | None,
    project: Path | None,
    fmt: str | None,
    strict: bool,
) -> None:
    """Check a project's declared references against the dependency rules.

    Exit codes: 0 = clean or warnings without --strict,
    1 = warnings with --strict, 2 = unusable declared references.
    """
    from refguard.checker import CheckError, format_json, format_porcelain, render_check
    from refguard.checker import check as run_check
    from refguard.config import load_config

    project_root = project or Path.cwd()
    config = load_config(project_root).with_overrides(
        rules_file=rules_file,
        references_file=references_file,
    )

    # Resolve output format: explicit flag > TTY detection.
    if fmt is None:
        fmt = "rich" if sys.stdout.isatty() else "porcelain"

    try:
        result = run_check(unit, config)
    except CheckError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(2)

    if fmt == "rich":
        from rich.console import Console

        render_check(result, Console())
    else:
        output = format_json(result) if fmt == "json" else format_porcelain(result)
        if output:
            click.echo(output)

    if strict and result.warnings:
        sys.exit(1)


# refguard:domain=policy
@main.command("validate-rules")
@click.argument("rules_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--json", "output_json", is_flag=True, help="Output as JSON.")
def validate_rules(*, rules_path: Path, output_json: bool) -> None:
    """Validate a dependency rules file and summarize it.

    Exit code 2 when the file is not a valid rule document.
    """
    from refguard.policy.rules import load_rules

    try:
        rules = load_rules(rules_path)
    except (OSError, ValueError) as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(2)

    summary = {
        "project_rules": len(rules.project_dependencies),
        "package_rules": len(rules.package_dependencies),
        "tech_debt_exceptions": len(rules.tech_debt_exceptions()),
    }

    if output_json:
        click.echo(json.dumps(summary, indent=2))
        return

    click.echo(f"{rules_path.name}: valid")
    click.echo(f"  Project rules: {summary['project_rules']}")
    click.echo(f"  Package rules: {summary['package_rules']}")
    click.echo(f"  Tech-debt exceptions: {summary['tech_debt_exceptions']}")
