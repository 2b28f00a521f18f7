"""Check configuration: enable flag and file locations, read from ``refguard.yml``.

Example ``refguard.yml``::

    enabled: true
    rules_file: build/DependencyRules.json
    references_file: obj/_DeclaredReferences.tsv

Relative paths resolve against the project root.
"""

# refguard:domain=check

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "refguard.yml"
DEFAULT_REFERENCES_FILE = "_DeclaredReferences.tsv"


@dataclass(frozen=True)
class CheckConfig:
    """Where to find the rule document and declared references, and whether to check at all."""

    enabled: bool = True
    rules_file: Path | None = None
    references_file: Path = Path(DEFAULT_REFERENCES_FILE)

    def with_overrides(
        self,
        *,
        enabled: bool | None = None,
        rules_file: Path | None = None,
        references_file: Path | None = None,
    ) -> CheckConfig:
        """Return a copy with every non-``None`` argument applied."""
        changes: dict[str, object] = {}
        if enabled is not None:
            changes["enabled"] = enabled
        if rules_file is not None:
            changes["rules_file"] = rules_file
        if references_file is not None:
            changes["references_file"] = references_file
        return replace(self, **changes)  # type: ignore[arg-type]


def _resolve(project_root: Path, raw: str) -> Path:
    path = Path(raw)
    return path if path.is_absolute() else project_root / path


def load_config(project_root: Path) -> CheckConfig:
    """Load ``refguard.yml`` from *project_root*.

    Falls back to defaults for a missing file, unreadable YAML, or keys of the
    wrong type.
    """
    defaults = CheckConfig(references_file=project_root / DEFAULT_REFERENCES_FILE)
    config_path = project_root / CONFIG_FILE_NAME
    if not config_path.is_file():
        return defaults

    try:
        with config_path.open("r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
    except (OSError, yaml.YAMLError):
        logger.warning("Failed to read %s, using default configuration", CONFIG_FILE_NAME)
        return defaults

    if data is None:
        return defaults
    if not isinstance(data, dict):
        logger.warning("%s must be a mapping, using default configuration", CONFIG_FILE_NAME)
        return defaults

    config = defaults

    enabled = data.get("enabled")
    if isinstance(enabled, bool):
        config = replace(config, enabled=enabled)
    elif enabled is not None:
        logger.warning("Ignoring %s 'enabled': expected a boolean", CONFIG_FILE_NAME)

    for key in ("rules_file", "references_file"):
        value = data.get(key)
        if isinstance(value, str) and value.strip():
            config = replace(config, **{key: _resolve(project_root, value)})
        elif value is not None:
            logger.warning("Ignoring %s '%s': expected a path string", CONFIG_FILE_NAME, key)

    return config
