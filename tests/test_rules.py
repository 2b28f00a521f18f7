"""Tests for refguard.policy.rules — rule document parsing and loading."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from refguard.policy.rules import (
    DependencyRules,
    LinkType,
    PackageDependencyRule,
    Policy,
    ProjectDependencyRule,
    RuleException,
    load_rules,
    loads_lenient_json,
    parse_rules,
)

if TYPE_CHECKING:
    from pathlib import Path


# ---------------------------------------------------------------------------
# TestLenientJson
# ---------------------------------------------------------------------------


class TestLenientJson:
    """Comments and trailing commas are tolerated outside strings."""

    def test_line_and_block_comments(self) -> None:
        text = '{\n  // a comment\n  "a": 1, /* inline */ "b": 2\n}'
        assert loads_lenient_json(text) == {"a": 1, "b": 2}

    def test_trailing_commas(self) -> None:
        assert loads_lenient_json('{"a": [1, 2, ], }') == {"a": [1, 2]}

    def test_trailing_comma_before_comment(self) -> None:
        assert loads_lenient_json('{"a": 1, // last\n}') == {"a": 1}

    def test_comment_markers_inside_strings_are_kept(self) -> None:
        text = '{"url": "http://example.com/*x*/", "t": "a, }"}'
        assert loads_lenient_json(text) == {"url": "http://example.com/*x*/", "t": "a, }"}

    def test_escaped_quote_inside_string(self) -> None:
        assert loads_lenient_json(r'{"a": "say \"hi\" // not a comment"}') == {
            "a": 'say "hi" // not a comment'
        }

    def test_unterminated_block_comment(self) -> None:
        with pytest.raises(ValueError, match="unterminated block comment"):
            loads_lenient_json('{"a": 1 /* oops')

    def test_invalid_json(self) -> None:
        with pytest.raises(ValueError):
            loads_lenient_json("Invalid JSON content")


# ---------------------------------------------------------------------------
# TestParseRules
# ---------------------------------------------------------------------------


class TestParseRules:
    """Tests for parse_rules() — schema validation of a decoded document."""

    def test_empty_document(self) -> None:
        rules = parse_rules({})
        assert rules == DependencyRules()
        assert rules.rule_count == 0

    def test_project_rule(self) -> None:
        rules = parse_rules(
            {
                "ProjectDependencies": [
                    {
                        "From": "*",
                        "To": "Legacy.*",
                        "Description": "No legacy",
                        "Policy": "Forbidden",
                        "LinkType": "DirectOrTransitive",
                        "Exceptions": [
                            {
                                "From": "A.csproj",
                                "To": "Legacy.Core",
                                "Justification": "migrating",
                                "IsTechDebt": True,
                            }
                        ],
                    }
                ]
            }
        )
        assert rules.project_dependencies == (
            ProjectDependencyRule(
                from_pattern="*",
                to_pattern="Legacy.*",
                description="No legacy",
                policy=Policy.FORBIDDEN,
                link_type=LinkType.DIRECT_OR_TRANSITIVE,
                exceptions=(
                    RuleException("A.csproj", "Legacy.Core", "migrating", is_tech_debt=True),
                ),
            ),
        )
        assert rules.package_dependencies == ()

    def test_package_rule(self) -> None:
        rules = parse_rules(
            {
                "PackageDependencies": [
                    {"From": "*", "To": "System.Text.*", "Description": "d", "Policy": "Forbidden"}
                ]
            }
        )
        assert rules.package_dependencies == (
            PackageDependencyRule("*", "System.Text.*", "d", Policy.FORBIDDEN),
        )

    def test_keys_and_enum_values_are_case_insensitive(self) -> None:
        rules = parse_rules(
            {
                "projectdependencies": [
                    {
                        "FROM": "a",
                        "to": "b",
                        "policy": "forbidden",
                        "linkType": "transitive",
                        "exceptions": [{"from": "a", "TO": "b", "isTechDebt": True}],
                    }
                ]
            }
        )
        rule = rules.project_dependencies[0]
        assert rule.policy is Policy.FORBIDDEN
        assert rule.link_type is LinkType.TRANSITIVE
        assert rule.exceptions[0].is_tech_debt is True

    def test_defaults(self) -> None:
        rules = parse_rules({"ProjectDependencies": [{"From": "a", "To": "b"}]})
        rule = rules.project_dependencies[0]
        assert rule.policy is Policy.ALLOWED
        assert rule.link_type is LinkType.DIRECT
        assert rule.description == ""
        assert rule.exceptions == ()

    def test_exception_defaults(self) -> None:
        rules = parse_rules(
            {"PackageDependencies": [{"From": "a", "To": "b", "Exceptions": [{"From": "x", "To": "y"}]}]}
        )
        exception = rules.package_dependencies[0].exceptions[0]
        assert exception.justification == ""
        assert exception.is_tech_debt is False

    def test_exceptions_keep_order(self) -> None:
        rules = parse_rules(
            {
                "ProjectDependencies": [
                    {
                        "From": "*",
                        "To": "*",
                        "Exceptions": [{"From": "1", "To": "1"}, {"From": "2", "To": "2"}],
                    }
                ]
            }
        )
        assert [e.from_pattern for e in rules.project_dependencies[0].exceptions] == ["1", "2"]

    def test_not_a_mapping(self) -> None:
        with pytest.raises(ValueError, match="must be a mapping"):
            parse_rules([])

    def test_null_document(self) -> None:
        with pytest.raises(ValueError, match="must be a mapping"):
            parse_rules(None)

    def test_rule_list_must_be_list(self) -> None:
        with pytest.raises(ValueError, match="'ProjectDependencies' must be a list"):
            parse_rules({"ProjectDependencies": {"From": "a"}})

    def test_missing_from(self) -> None:
        with pytest.raises(ValueError, match=r"ProjectDependencies\[0\]: 'From' must be"):
            parse_rules({"ProjectDependencies": [{"To": "b"}]})

    def test_empty_to(self) -> None:
        with pytest.raises(ValueError, match=r"PackageDependencies\[1\]: 'To' must be"):
            parse_rules(
                {"PackageDependencies": [{"From": "a", "To": "b"}, {"From": "a", "To": "  "}]}
            )

    def test_invalid_policy(self) -> None:
        with pytest.raises(ValueError, match="invalid Policy 'Maybe'"):
            parse_rules({"ProjectDependencies": [{"From": "a", "To": "b", "Policy": "Maybe"}]})

    def test_invalid_link_type(self) -> None:
        with pytest.raises(ValueError, match="invalid LinkType 'Sideways'"):
            parse_rules(
                {"ProjectDependencies": [{"From": "a", "To": "b", "LinkType": "Sideways"}]}
            )

    def test_link_type_rejected_on_package_rule(self) -> None:
        with pytest.raises(ValueError, match="only supported on project dependency rules"):
            parse_rules(
                {"PackageDependencies": [{"From": "a", "To": "b", "LinkType": "Direct"}]}
            )

    def test_invalid_exception_location(self) -> None:
        with pytest.raises(ValueError, match=r"ProjectDependencies\[0\]\.Exceptions\[1\]"):
            parse_rules(
                {
                    "ProjectDependencies": [
                        {
                            "From": "a",
                            "To": "b",
                            "Exceptions": [{"From": "a", "To": "b"}, {"From": "a"}],
                        }
                    ]
                }
            )

    def test_is_tech_debt_must_be_boolean(self) -> None:
        with pytest.raises(ValueError, match="'IsTechDebt' must be a boolean"):
            parse_rules(
                {
                    "ProjectDependencies": [
                        {
                            "From": "a",
                            "To": "b",
                            "Exceptions": [{"From": "a", "To": "b", "IsTechDebt": "yes"}],
                        }
                    ]
                }
            )

    def test_tech_debt_exceptions(self) -> None:
        rules = parse_rules(
            {
                "ProjectDependencies": [
                    {
                        "From": "*",
                        "To": "*",
                        "Exceptions": [
                            {"From": "a", "To": "b", "IsTechDebt": True},
                            {"From": "a", "To": "c"},
                        ],
                    }
                ],
                "PackageDependencies": [
                    {
                        "From": "*",
                        "To": "*",
                        "Exceptions": [{"From": "a", "To": "p", "IsTechDebt": True}],
                    }
                ],
            }
        )
        pairs = rules.tech_debt_exceptions()
        assert [(ex.from_pattern, ex.to_pattern) for _, ex in pairs] == [("a", "b"), ("a", "p")]
        assert rules.rule_count == 2


# ---------------------------------------------------------------------------
# TestLoadRules
# ---------------------------------------------------------------------------


class TestLoadRules:
    """Tests for load_rules() — reading JSON and YAML rule documents."""

    def test_load_json_with_comments(self, tmp_path: Path) -> None:
        rules_path = tmp_path / "DependencyRules.json"
        rules_path.write_text(
            "{\n"
            "  // project rules\n"
            '  "ProjectDependencies": [\n'
            "    {\n"
            '      "From": "TestProject.csproj",\n'
            '      "To": "ReferencedProject.csproj",\n'
            '      "Description": "Can\'t reference this project directly",\n'
            '      "Policy": "Forbidden",\n'
            '      "LinkType": "Direct",\n'
            "    },\n"
            "  ]\n"
            "}\n",
            encoding="utf-8",
        )
        rules = load_rules(rules_path)
        assert len(rules.project_dependencies) == 1
        assert rules.project_dependencies[0].description == "Can't reference this project directly"

    def test_load_json_with_bom(self, tmp_path: Path) -> None:
        rules_path = tmp_path / "rules.json"
        rules_path.write_bytes(b"\xef\xbb\xbf{}")
        assert load_rules(rules_path) == DependencyRules()

    def test_load_yaml(self, tmp_path: Path) -> None:
        rules_path = tmp_path / "rules.yml"
        rules_path.write_text(
            "PackageDependencies:\n"
            "  - From: '*'\n"
            "    To: Newtonsoft.Json\n"
            "    Description: Use System.Text.Json\n"
            "    Policy: Forbidden\n"
            "    Exceptions:\n"
            "      - From: Legacy.csproj\n"
            "        To: Newtonsoft.Json\n"
            "        IsTechDebt: true\n",
            encoding="utf-8",
        )
        rules = load_rules(rules_path)
        rule = rules.package_dependencies[0]
        assert rule.to_pattern == "Newtonsoft.Json"
        assert rule.exceptions[0].is_tech_debt is True

    def test_invalid_json(self, tmp_path: Path) -> None:
        rules_path = tmp_path / "DependencyRules.json"
        rules_path.write_text("Invalid JSON content", encoding="utf-8")
        with pytest.raises(ValueError, match="DependencyRules.json: invalid JSON"):
            load_rules(rules_path)

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        rules_path = tmp_path / "rules.yaml"
        rules_path.write_text("a: [unclosed\n", encoding="utf-8")
        with pytest.raises(ValueError, match="rules.yaml: invalid YAML"):
            load_rules(rules_path)

    def test_schema_error_propagates(self, tmp_path: Path) -> None:
        rules_path = tmp_path / "rules.json"
        rules_path.write_text('{"ProjectDependencies": [{"From": "a"}]}', encoding="utf-8")
        with pytest.raises(ValueError, match="'To' must be a non-empty string"):
            load_rules(rules_path)

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(OSError):
            load_rules(tmp_path / "missing.json")
