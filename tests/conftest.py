"""Shared test fixtures for refguard."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

if TYPE_CHECKING:
    from pathlib import Path


@pytest.fixture()
def tmp_project(tmp_path: Path) -> Path:
    """Create a minimal project with an empty rules file and no declared references."""
    project = tmp_path / "proj"
    project.mkdir()
    (project / "DependencyRules.json").write_text("{}\n", encoding="utf-8")
    (project / "refguard.yml").write_text(
        "rules_file: DependencyRules.json\nreferences_file: refs.tsv\n",
        encoding="utf-8",
    )
    return project
