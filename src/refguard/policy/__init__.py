"""Policy engine: wildcard patterns, declared references, dependency rules, evaluation."""

# refguard:domain=policy

from refguard.policy.evaluator import (
    EvaluationResult,
    Finding,
    FindingKind,
    RuleFamily,
    evaluate,
    evaluate_policy,
    find_stale_exceptions,
    select_applicable_rules,
)
from refguard.policy.patterns import WildcardPattern, compile_pattern, matches
from refguard.policy.references import (
    LinkKind,
    ReferenceEdge,
    load_references,
    parse_reference_line,
    write_references,
)
from refguard.policy.rules import (
    DependencyRule,
    DependencyRules,
    LinkType,
    PackageDependencyRule,
    Policy,
    ProjectDependencyRule,
    RuleException,
    load_rules,
    parse_rules,
)

__all__ = [
    "DependencyRule",
    "DependencyRules",
    "EvaluationResult",
    "Finding",
    "FindingKind",
    "LinkKind",
    "LinkType",
    "PackageDependencyRule",
    "Policy",
    "ProjectDependencyRule",
    "ReferenceEdge",
    "RuleException",
    "RuleFamily",
    "WildcardPattern",
    "compile_pattern",
    "evaluate",
    "evaluate_policy",
    "find_stale_exceptions",
    "load_references",
    "load_rules",
    "matches",
    "parse_reference_line",
    "parse_rules",
    "select_applicable_rules",
    "write_references",
]
