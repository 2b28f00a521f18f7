"""Declared references: the dependency edges of one compilation unit.

The collector writes one edge per line as ``Source<TAB>LinkKind<TAB>Target``.
"""

# refguard:domain=policy

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable
    from pathlib import Path

logger = logging.getLogger(__name__)

FIELD_SEPARATOR = "\t"


class LinkKind(enum.Enum):
    """How the compilation unit reaches a dependency."""

    PROJECT_DIRECT = "ProjectReferenceDirect"
    PROJECT_TRANSITIVE = "ProjectReferenceTransitive"
    PACKAGE_DIRECT = "PackageReferenceDirect"

    @property
    def is_project(self) -> bool:
        return self in PROJECT_LINK_KINDS


PROJECT_LINK_KINDS: frozenset[LinkKind] = frozenset(
    {LinkKind.PROJECT_DIRECT, LinkKind.PROJECT_TRANSITIVE}
)
PACKAGE_LINK_KINDS: frozenset[LinkKind] = frozenset({LinkKind.PACKAGE_DIRECT})


@dataclass(frozen=True)
class ReferenceEdge:
    """A single declared dependency of the unit under analysis."""

    source: str
    target: str
    kind: LinkKind


def parse_reference_line(line: str, line_number: int | None = None) -> ReferenceEdge:
    """Parse one ``Source<TAB>LinkKind<TAB>Target`` line.

    Raises ``ValueError`` on a wrong field count or an unknown link kind.
    """
    where = f"line {line_number}: " if line_number is not None else ""
    fields = line.rstrip("\r\n").split(FIELD_SEPARATOR)
    if len(fields) != 3:
        msg = f"{where}expected 3 tab-separated fields, got {len(fields)}"
        raise ValueError(msg)

    source, token, target = fields
    try:
        kind = LinkKind(token)
    except ValueError:
        valid = sorted(k.value for k in LinkKind)
        msg = f"{where}unknown link kind '{token}', must be one of {valid}"
        raise ValueError(msg) from None

    return ReferenceEdge(source=source, target=target, kind=kind)


def load_references(path: Path) -> list[ReferenceEdge]:
    """Read a declared-reference file, skipping blank lines.

    Raises ``FileNotFoundError`` when the file does not exist and
    ``ValueError`` for malformed lines.
    """
    if not path.is_file():
        msg = f"The file '{path}' does not exist."
        raise FileNotFoundError(msg)

    edges: list[ReferenceEdge] = []
    with path.open("r", encoding="utf-8") as fh:
        for line_number, line in enumerate(fh, start=1):
            if not line.strip():
                continue
            edges.append(parse_reference_line(line, line_number))

    logger.debug("Loaded %d declared references from %s", len(edges), path)
    return edges


def format_reference_line(edge: ReferenceEdge) -> str:
    return FIELD_SEPARATOR.join((edge.source, edge.kind.value, edge.target))


def write_references(edges: Iterable[ReferenceEdge], path: Path) -> None:
    """Write *edges* in the declared-reference format, one per line."""
    lines = [format_reference_line(edge) for edge in edges]
    path.write_text("".join(f"{line}\n" for line in lines), encoding="utf-8")


def partition_edges(
    edges: Iterable[ReferenceEdge],
) -> tuple[list[ReferenceEdge], list[ReferenceEdge]]:
    """Split *edges* into ``(project_edges, package_edges)``, keeping order."""
    project_edges: list[ReferenceEdge] = []
    package_edges: list[ReferenceEdge] = []
    for edge in edges:
        if edge.kind.is_project:
            project_edges.append(edge)
        else:
            package_edges.append(edge)
    return project_edges, package_edges
