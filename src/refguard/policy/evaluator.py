"""Policy evaluation: violations and stale tech-debt exceptions for one unit.

Evaluation is a pure function of the rule document, the identifier of the
compilation unit under analysis, and that unit's declared references.  The
project and package rule families are evaluated independently.
"""

# refguard:domain=policy

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from refguard.policy.patterns import matches
from refguard.policy.references import (
    PACKAGE_LINK_KINDS,
    PROJECT_LINK_KINDS,
    LinkKind,
    partition_edges,
)
from refguard.policy.rules import (
    LinkType,
    Policy,
    ProjectDependencyRule,
)

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from refguard.policy.references import ReferenceEdge
    from refguard.policy.rules import DependencyRule, DependencyRules, RuleException

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Findings
# ---------------------------------------------------------------------------


class RuleFamily(enum.Enum):
    PROJECT = "project"
    PACKAGE = "package"


class FindingKind(enum.Enum):
    NO_RULES_MATCHED = "no-rules-matched"
    REFERENCE_VIOLATION = "reference-violation"
    STALE_EXCEPTION = "stale-exception"


@dataclass(frozen=True)
class Finding:
    """A single evaluation outcome.

    For ``NO_RULES_MATCHED`` only *source* (the unit) is set.  For stale
    exceptions *source* and *target* are the exception's From/To patterns as
    written in the rule document.
    """

    kind: FindingKind
    family: RuleFamily
    source: str
    target: str | None = None
    rule_description: str | None = None


@dataclass
class EvaluationResult:
    """Findings of one evaluation pass, in discovery order."""

    findings: list[Finding] = field(default_factory=list)
    project_rules_applied: int = 0
    package_rules_applied: int = 0

    @property
    def violations(self) -> list[Finding]:
        return [f for f in self.findings if f.kind is FindingKind.REFERENCE_VIOLATION]

    @property
    def stale_exceptions(self) -> list[Finding]:
        return [f for f in self.findings if f.kind is FindingKind.STALE_EXCEPTION]

    @property
    def no_rules_matched(self) -> bool:
        return any(f.kind is FindingKind.NO_RULES_MATCHED for f in self.findings)


# ---------------------------------------------------------------------------
# Matching helpers
# ---------------------------------------------------------------------------

_LINK_TYPE_KINDS: dict[LinkType, frozenset[LinkKind]] = {
    LinkType.DIRECT: frozenset({LinkKind.PROJECT_DIRECT}),
    LinkType.TRANSITIVE: frozenset({LinkKind.PROJECT_TRANSITIVE}),
    LinkType.DIRECT_OR_TRANSITIVE: PROJECT_LINK_KINDS,
}


def permits_link_kind(rule: DependencyRule, kind: LinkKind) -> bool:
    """Return True if *rule* applies to edges of *kind*."""
    if isinstance(rule, ProjectDependencyRule):
        return kind in _LINK_TYPE_KINDS[rule.link_type]
    return kind in PACKAGE_LINK_KINDS


def rule_matches_edge(rule: DependencyRule, edge: ReferenceEdge) -> bool:
    return (
        permits_link_kind(rule, edge.kind)
        and matches(rule.from_pattern, edge.source)
        and matches(rule.to_pattern, edge.target)
    )


def exception_matches_edge(exception: RuleException, edge: ReferenceEdge) -> bool:
    return matches(exception.from_pattern, edge.source) and matches(
        exception.to_pattern, edge.target
    )


def is_edge_valid(rule: DependencyRule, edge: ReferenceEdge) -> bool:
    """Apply *rule* to an edge it matches.

    Allowed rules pass unless an exception matches; Forbidden rules fail
    unless an exception matches.
    """
    exception_matched = any(exception_matches_edge(ex, edge) for ex in rule.exceptions)
    if rule.policy is Policy.ALLOWED:
        return not exception_matched
    return exception_matched


# ---------------------------------------------------------------------------
# Evaluation stages
# ---------------------------------------------------------------------------


def select_applicable_rules(
    rules: Iterable[DependencyRule], unit: str
) -> list[DependencyRule]:
    """Return the rules whose From pattern matches the unit under analysis."""
    return [rule for rule in rules if matches(rule.from_pattern, unit)]


def evaluate_policy(
    rules: Sequence[DependencyRule],
    edges: Iterable[ReferenceEdge],
    family: RuleFamily,
) -> list[Finding]:
    """Return one violation per (edge, matching rule) whose outcome is invalid."""
    findings: list[Finding] = []
    for edge in edges:
        for rule in rules:
            if not rule_matches_edge(rule, edge):
                continue
            if is_edge_valid(rule, edge):
                continue
            findings.append(
                Finding(
                    kind=FindingKind.REFERENCE_VIOLATION,
                    family=family,
                    source=edge.source,
                    target=edge.target,
                    rule_description=rule.description,
                )
            )
    return findings


def find_stale_exceptions(
    rules: Sequence[DependencyRule],
    edges: Sequence[ReferenceEdge],
    unit: str,
    family: RuleFamily,
) -> list[Finding]:
    """Return tech-debt exceptions that no declared edge of this unit needs.

    Exceptions whose From does not match *unit* belong to another unit's run
    and are skipped.
    """
    findings: list[Finding] = []
    for rule in rules:
        for exception in rule.exceptions:
            if not exception.is_tech_debt:
                continue
            if not matches(exception.from_pattern, unit):
                continue
            still_needed = any(
                permits_link_kind(rule, edge.kind) and exception_matches_edge(exception, edge)
                for edge in edges
            )
            if still_needed:
                continue
            findings.append(
                Finding(
                    kind=FindingKind.STALE_EXCEPTION,
                    family=family,
                    source=exception.from_pattern,
                    target=exception.to_pattern,
                    rule_description=rule.description,
                )
            )
    return findings


def evaluate(
    rules: DependencyRules,
    unit: str,
    edges: Iterable[ReferenceEdge],
) -> EvaluationResult:
    """Evaluate both rule families for one compilation unit.

    When no project rule applies to *unit* a ``NO_RULES_MATCHED`` finding is
    recorded and the project family is skipped; the package family is
    evaluated regardless.
    """
    project_edges, package_edges = partition_edges(edges)
    result = EvaluationResult()

    project_rules = select_applicable_rules(rules.project_dependencies, unit)
    if not project_rules:
        logger.debug("No project dependency rules apply to %s", unit)
        result.findings.append(
            Finding(kind=FindingKind.NO_RULES_MATCHED, family=RuleFamily.PROJECT, source=unit)
        )
    else:
        result.project_rules_applied = len(project_rules)
        result.findings.extend(evaluate_policy(project_rules, project_edges, RuleFamily.PROJECT))
        result.findings.extend(
            find_stale_exceptions(project_rules, project_edges, unit, RuleFamily.PROJECT)
        )

    package_rules = select_applicable_rules(rules.package_dependencies, unit)
    result.package_rules_applied = len(package_rules)
    if package_rules:
        result.findings.extend(evaluate_policy(package_rules, package_edges, RuleFamily.PACKAGE))
        result.findings.extend(
            find_stale_exceptions(package_rules, package_edges, unit, RuleFamily.PACKAGE)
        )

    logger.debug(
        "Evaluated %s: %d project rules, %d package rules, %d findings",
        unit,
        result.project_rules_applied,
        result.package_rules_applied,
        len(result.findings),
    )
    return result

