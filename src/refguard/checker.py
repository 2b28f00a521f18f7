# refguard:domain=check
"""Check orchestrator: load rules and declared references, evaluate, format diagnostics."""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from rich.markup import escape

from refguard.policy.evaluator import FindingKind, RuleFamily, evaluate
from refguard.policy.references import load_references
from refguard.policy.rules import load_rules

if TYPE_CHECKING:
    from rich.console import Console

    from refguard.config import CheckConfig
    from refguard.policy.evaluator import Finding

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Diagnostic codes
# ---------------------------------------------------------------------------

RULES_NOT_PROVIDED = "RP0001"
INVALID_RULES_FORMAT = "RP0002"
NO_RULES_MATCHED = "RP0003"
PROJECT_REFERENCE_VIOLATION = "RP0004"
PACKAGE_REFERENCE_VIOLATION = "RP0005"
STALE_TECH_DEBT_EXCEPTION = "RP0006"

SEVERITY_INFO = "info"
SEVERITY_WARNING = "warning"


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class CheckError(Exception):
    """Raised when the declared references cannot be used."""


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Diagnostic:
    """A reportable outcome of a check run."""

    code: str
    severity: str  # "info" | "warning"
    message: str
    source: str | None = None
    target: str | None = None
    rule_description: str | None = None


@dataclass
class CheckResult:
    """Result of a check run."""

    unit: str
    diagnostics: list[Diagnostic] = field(default_factory=list)
    rules_evaluated: int = 0
    references_scanned: int = 0
    elapsed_ms: float = 0.0

    @property
    def warnings(self) -> list[Diagnostic]:
        return [d for d in self.diagnostics if d.severity == SEVERITY_WARNING]


# ---------------------------------------------------------------------------
# Finding -> diagnostic
# ---------------------------------------------------------------------------


def _finding_to_diagnostic(finding: Finding, rules_file_name: str) -> Diagnostic:
    if finding.kind is FindingKind.NO_RULES_MATCHED:
        return Diagnostic(
            code=NO_RULES_MATCHED,
            severity=SEVERITY_INFO,
            message=f"No dependency rules matched the current project '{finding.source}'",
            source=finding.source,
        )

    if finding.kind is FindingKind.STALE_EXCEPTION:
        return Diagnostic(
            code=STALE_TECH_DEBT_EXCEPTION,
            severity=SEVERITY_WARNING,
            message=(
                f"Exception '{finding.source}' ==> '{finding.target}' of dependency rule "
                f"'{finding.rule_description}' is marked as tech debt but no longer matches "
                f"any declared reference. Remove it from '{rules_file_name}'."
            ),
            source=finding.source,
            target=finding.target,
            rule_description=finding.rule_description,
        )

    if finding.family is RuleFamily.PROJECT:
        code, noun = PROJECT_REFERENCE_VIOLATION, "Project"
    else:
        code, noun = PACKAGE_REFERENCE_VIOLATION, "Package"
    return Diagnostic(
        code=code,
        severity=SEVERITY_WARNING,
        message=(
            f"{noun} reference '{finding.source}' ==> '{finding.target}' violates dependency "
            f"rule '{finding.rule_description}' or one of its exceptions. Please remove the "
            f"dependency or update '{rules_file_name}' file to allow it."
        ),
        source=finding.source,
        target=finding.target,
        rule_description=finding.rule_description,
    )


# ---------------------------------------------------------------------------
# Main entry point
# ---------------------------------------------------------------------------


def check(unit: str, config: CheckConfig) -> CheckResult:
    """Check the declared references of *unit* against the configured rules.

    Parameters
    ----------
    unit:
        Identifier of the compilation unit under analysis (usually the full
        project file path); the source of every declared reference.
    config:
        Enable flag and file locations.

    Returns
    -------
    CheckResult
        Diagnostics, counts, and timing.  Rule document problems are reported
        as ``RP0001``/``RP0002`` diagnostics rather than raised.

    Raises
    ------
    CheckError
        When the declared-reference file is malformed or unreadable.
    """
    start = time.monotonic()
    result = CheckResult(unit=unit)

    def _finish() -> CheckResult:
        result.elapsed_ms = (time.monotonic() - start) * 1000
        return result

    if not config.enabled:
        logger.debug("Reference checks disabled, skipping %s", unit)
        return _finish()

    # Step a: the rule document must exist.
    rules_path = config.rules_file
    if rules_path is None or not rules_path.is_file():
        current = str(rules_path) if rules_path is not None else "N/A"
        result.diagnostics.append(
            Diagnostic(
                code=RULES_NOT_PROVIDED,
                severity=SEVERITY_WARNING,
                message=(
                    "Provide DependencyRulesFile property to specify valid "
                    "dependency rules file. "
                    f"Current path: {current}."
                ),
            )
        )
        return _finish()

    # Step b: load it.
    try:
        rules = load_rules(rules_path)
    except (OSError, ValueError) as exc:
        logger.debug("Invalid dependency rules file %s: %s", rules_path, exc)
        result.diagnostics.append(
            Diagnostic(
                code=INVALID_RULES_FORMAT,
                severity=SEVERITY_WARNING,
                message=(
                    f"Make sure the dependency rules file '{rules_path}' "
                    "is in the correct json format"
                ),
            )
        )
        return _finish()

    # Step c: nothing declared means nothing to check.
    references_path = config.references_file
    if not references_path.is_file():
        logger.debug("No declared references at %s, skipping %s", references_path, unit)
        return _finish()

    try:
        edges = load_references(references_path)
    except (OSError, ValueError) as exc:
        msg = f"Invalid declared references file '{references_path}': {exc}"
        raise CheckError(msg) from exc

    # Step d: evaluate.
    evaluation = evaluate(rules, unit, edges)
    result.rules_evaluated = evaluation.project_rules_applied + evaluation.package_rules_applied
    result.references_scanned = len(edges)
    result.diagnostics.extend(
        _finding_to_diagnostic(finding, rules_path.name) for finding in evaluation.findings
    )
    return _finish()


# ---------------------------------------------------------------------------
# Formatters
# ---------------------------------------------------------------------------


def render_check(result: CheckResult, console: Console) -> None:
    """Render a CheckResult using Rich console output.

    Warnings are marked ``x`` (red) and informational diagnostics ``i``
    (blue), followed by a one-line summary.
    """
    console.print(f"[bold]Unit:[/bold] {escape(result.unit)}")
    console.print(
        f"Rules: {result.rules_evaluated} applied, "
        f"References: {result.references_scanned} scanned"
    )
    console.print()

    elapsed_str = f"{result.elapsed_ms / 1000:.1f}s"

    if not result.diagnostics:
        console.print(f"[green]✓ No violations found[/green] ({elapsed_str})")
        return

    for diag in result.diagnostics:
        if diag.severity == SEVERITY_WARNING:
            console.print(f"[red]✗ {diag.code}[/red] {escape(diag.message)}", highlight=False)
        else:
            console.print(f"[blue]i {diag.code}[/blue] {escape(diag.message)}", highlight=False)
    console.print()

    count = len(result.warnings)
    console.print(f"{count} warnings found ({elapsed_str})")


def format_json(result: CheckResult) -> str:
    """Format a CheckResult as structured JSON with ``diagnostics`` and ``summary``."""
    diagnostics_list: list[dict[str, object]] = [
        {
            "code": d.code,
            "severity": d.severity,
            "message": d.message,
            "source": d.source,
            "target": d.target,
            "rule_description": d.rule_description,
        }
        for d in result.diagnostics
    ]

    output: dict[str, object] = {
        "unit": result.unit,
        "diagnostics": diagnostics_list,
        "summary": {
            "rules_evaluated": result.rules_evaluated,
            "references_scanned": result.references_scanned,
            "warnings_count": len(result.warnings),
            "elapsed_ms": result.elapsed_ms,
        },
    }

    return json.dumps(output, indent=2)


def format_porcelain(result: CheckResult) -> str:
    """Format a CheckResult as one TAB-separated line per diagnostic.

    Format: ``code<TAB>severity<TAB>source<TAB>target<TAB>rule_description``.
    Missing fields are empty strings.  Returns an empty string when there are
    no diagnostics.
    """
    lines: list[str] = []
    for d in result.diagnostics:
        fields = (d.code, d.severity, d.source or "", d.target or "", d.rule_description or "")
        lines.append("\t".join(fields))
    return "\n".join(lines)
