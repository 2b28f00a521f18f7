"""Dependency rules: the rule document model and its loader.

A rule document holds two independent rule families::

    {
      "ProjectDependencies": [
        {"From": "*", "To": "Legacy.*", "Description": "...",
         "Policy": "Forbidden", "LinkType": "Direct",
         "Exceptions": [{"From": "...", "To": "...", "Justification": "...",
                         "IsTechDebt": true}]}
      ],
      "PackageDependencies": [
        {"From": "*", "To": "Forbidden.Package", "Description": "...",
         "Policy": "Forbidden", "Exceptions": []}
      ]
    }

Field names and enum values are case-insensitive.  JSON documents may carry
``//`` and ``/* */`` comments and trailing commas; ``.yml``/``.yaml``
documents use the same keys.
"""

# refguard:domain=policy

from __future__ import annotations

import enum
import json
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, TypeVar

import yaml

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)

_E = TypeVar("_E", bound=enum.Enum)

YAML_SUFFIXES: frozenset[str] = frozenset({".yml", ".yaml"})

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class Policy(enum.Enum):
    """Default stance of a rule towards the edges it matches."""

    ALLOWED = "Allowed"
    FORBIDDEN = "Forbidden"


class LinkType(enum.Enum):
    """Which project edges a project rule applies to."""

    DIRECT = "Direct"
    TRANSITIVE = "Transitive"
    DIRECT_OR_TRANSITIVE = "DirectOrTransitive"


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RuleException:
    """A From/To carve-out that inverts its rule's outcome for matching edges."""

    from_pattern: str
    to_pattern: str
    justification: str = ""
    is_tech_debt: bool = False


@dataclass(frozen=True)
class ProjectDependencyRule:
    """Policy over project references, scoped by link type."""

    from_pattern: str
    to_pattern: str
    description: str
    policy: Policy
    link_type: LinkType = LinkType.DIRECT
    exceptions: tuple[RuleException, ...] = ()


@dataclass(frozen=True)
class PackageDependencyRule:
    """Policy over direct package references."""

    from_pattern: str
    to_pattern: str
    description: str
    policy: Policy
    exceptions: tuple[RuleException, ...] = ()


DependencyRule = ProjectDependencyRule | PackageDependencyRule


@dataclass(frozen=True)
class DependencyRules:
    """A parsed rule document."""

    project_dependencies: tuple[ProjectDependencyRule, ...] = ()
    package_dependencies: tuple[PackageDependencyRule, ...] = ()

    @property
    def rule_count(self) -> int:
        return len(self.project_dependencies) + len(self.package_dependencies)

    def tech_debt_exceptions(self) -> list[tuple[DependencyRule, RuleException]]:
        """Return every ``(rule, exception)`` pair flagged as tech debt."""
        pairs: list[tuple[DependencyRule, RuleException]] = []
        rules: tuple[DependencyRule, ...] = (
            *self.project_dependencies,
            *self.package_dependencies,
        )
        for rule in rules:
            pairs.extend((rule, ex) for ex in rule.exceptions if ex.is_tech_debt)
        return pairs


# ---------------------------------------------------------------------------
# Lenient JSON
# ---------------------------------------------------------------------------


def _strip_comments(text: str) -> str:
    """Drop ``//`` and ``/* */`` comments that sit outside string literals."""
    out: list[str] = []
    i = 0
    n = len(text)
    in_string = False
    while i < n:
        ch = text[i]
        if in_string:
            out.append(ch)
            if ch == "\\" and i + 1 < n:
                out.append(text[i + 1])
                i += 2
                continue
            if ch == '"':
                in_string = False
            i += 1
            continue
        if ch == '"':
            in_string = True
            out.append(ch)
            i += 1
        elif text.startswith("//", i):
            end = text.find("\n", i)
            i = n if end < 0 else end
        elif text.startswith("/*", i):
            end = text.find("*/", i + 2)
            if end < 0:
                msg = "unterminated block comment"
                raise ValueError(msg)
            i = end + 2
        else:
            out.append(ch)
            i += 1
    return "".join(out)


def _strip_trailing_commas(text: str) -> str:
    """Drop commas directly followed by ``}`` or ``]`` outside string literals."""
    out: list[str] = []
    in_string = False
    escaped = False
    for i, ch in enumerate(text):
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            out.append(ch)
            continue
        if ch == '"':
            in_string = True
        elif ch == ",":
            rest = text[i + 1 :].lstrip()
            if rest[:1] in ("}", "]"):
                continue
        out.append(ch)
    return "".join(out)


def loads_lenient_json(text: str) -> object:
    """Decode JSON that may contain comments and trailing commas."""
    cleaned = _strip_trailing_commas(_strip_comments(text))
    return json.loads(cleaned)


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def _fold_keys(data: dict[object, object]) -> dict[str, object]:
    return {str(key).lower(): value for key, value in data.items()}


def _parse_enum(enum_cls: type[_E], raw: object, context: str, field_name: str) -> _E:
    if not isinstance(raw, str):
        msg = f"{context}: '{field_name}' must be a string"
        raise ValueError(msg)
    for member in enum_cls:
        if member.value.lower() == raw.strip().lower():
            return member
    valid = [m.value for m in enum_cls]
    msg = f"{context}: invalid {field_name} '{raw}', must be one of {valid}"
    raise ValueError(msg)


def _parse_pattern(data: dict[str, object], key: str, context: str) -> str:
    value = data.get(key.lower())
    if not isinstance(value, str) or not value.strip():
        msg = f"{context}: '{key}' must be a non-empty string"
        raise ValueError(msg)
    return value


def _parse_exception(data: object, context: str) -> RuleException:
    if not isinstance(data, dict):
        msg = f"{context}: exception must be a mapping"
        raise ValueError(msg)
    fields = _fold_keys(data)

    is_tech_debt = fields.get("istechdebt", False)
    if not isinstance(is_tech_debt, bool):
        msg = f"{context}: 'IsTechDebt' must be a boolean"
        raise ValueError(msg)

    justification = fields.get("justification")
    return RuleException(
        from_pattern=_parse_pattern(fields, "From", context),
        to_pattern=_parse_pattern(fields, "To", context),
        justification="" if justification is None else str(justification),
        is_tech_debt=is_tech_debt,
    )


def _parse_exceptions(fields: dict[str, object], context: str) -> tuple[RuleException, ...]:
    raw = fields.get("exceptions")
    if raw is None:
        return ()
    if not isinstance(raw, list):
        msg = f"{context}: 'Exceptions' must be a list"
        raise ValueError(msg)
    return tuple(
        _parse_exception(item, f"{context}.Exceptions[{idx}]") for idx, item in enumerate(raw)
    )


def _rule_fields(data: object, context: str) -> dict[str, object]:
    if not isinstance(data, dict):
        msg = f"{context}: rule must be a mapping"
        raise ValueError(msg)
    return _fold_keys(data)


def _parse_description(fields: dict[str, object]) -> str:
    raw = fields.get("description")
    return "" if raw is None else str(raw)


def _parse_policy(fields: dict[str, object], context: str) -> Policy:
    # Missing Policy and LinkType take the first member of their enum.
    raw = fields.get("policy")
    if raw is None:
        return Policy.ALLOWED
    return _parse_enum(Policy, raw, context, "Policy")


def _parse_project_rule(data: object, context: str) -> ProjectDependencyRule:
    fields = _rule_fields(data, context)
    link_type_raw = fields.get("linktype")
    link_type = (
        LinkType.DIRECT
        if link_type_raw is None
        else _parse_enum(LinkType, link_type_raw, context, "LinkType")
    )
    return ProjectDependencyRule(
        from_pattern=_parse_pattern(fields, "From", context),
        to_pattern=_parse_pattern(fields, "To", context),
        description=_parse_description(fields),
        policy=_parse_policy(fields, context),
        link_type=link_type,
        exceptions=_parse_exceptions(fields, context),
    )


def _parse_package_rule(data: object, context: str) -> PackageDependencyRule:
    fields = _rule_fields(data, context)
    if "linktype" in fields:
        msg = f"{context}: 'LinkType' is only supported on project dependency rules"
        raise ValueError(msg)
    return PackageDependencyRule(
        from_pattern=_parse_pattern(fields, "From", context),
        to_pattern=_parse_pattern(fields, "To", context),
        description=_parse_description(fields),
        policy=_parse_policy(fields, context),
        exceptions=_parse_exceptions(fields, context),
    )


def _rule_list(fields: dict[str, object], key: str) -> list[object]:
    raw = fields.get(key.lower())
    if raw is None:
        return []
    if not isinstance(raw, list):
        msg = f"'{key}' must be a list"
        raise ValueError(msg)
    return raw


def parse_rules(data: object) -> DependencyRules:
    """Validate a decoded rule document and build ``DependencyRules``.

    Raises ``ValueError`` naming the offending rule or exception.
    """
    if not isinstance(data, dict):
        msg = "dependency rules document must be a mapping"
        raise ValueError(msg)
    fields = _fold_keys(data)

    project_rules = tuple(
        _parse_project_rule(item, f"ProjectDependencies[{idx}]")
        for idx, item in enumerate(_rule_list(fields, "ProjectDependencies"))
    )
    package_rules = tuple(
        _parse_package_rule(item, f"PackageDependencies[{idx}]")
        for idx, item in enumerate(_rule_list(fields, "PackageDependencies"))
    )
    return DependencyRules(
        project_dependencies=project_rules,
        package_dependencies=package_rules,
    )


def load_rules(rules_path: Path) -> DependencyRules:
    """Read and parse a rule document.

    YAML is used for ``.yml``/``.yaml`` files, lenient JSON otherwise.
    Raises ``ValueError`` on syntax or schema errors and ``OSError`` when the
    file cannot be read.
    """
    text = rules_path.read_text(encoding="utf-8-sig")

    if rules_path.suffix.lower() in YAML_SUFFIXES:
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            msg = f"{rules_path.name}: invalid YAML: {exc}"
            raise ValueError(msg) from exc
    else:
        try:
            data = loads_lenient_json(text)
        except ValueError as exc:
            msg = f"{rules_path.name}: invalid JSON: {exc}"
            raise ValueError(msg) from exc

    rules = parse_rules(data)
    logger.debug(
        "Loaded %d project and %d package dependency rules from %s",
        len(rules.project_dependencies),
        len(rules.package_dependencies),
        rules_path,
    )
    return rules
