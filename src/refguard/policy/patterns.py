"""Wildcard pattern matching for project paths and package names.

A pattern is literal text where ``*`` stands for zero or more characters.
Matching is case-insensitive and anchored at the end only: a candidate
matches when some suffix of it matches the whole pattern.  ``"Foo.csproj"``
therefore matches ``"src/Foo.csproj"`` and also ``"XFoo.csproj"``.
"""

# refguard:domain=policy

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache

WILDCARD = "*"


@dataclass(frozen=True)
class WildcardPattern:
    """A compiled pattern: the lower-cased literal segments between wildcards."""

    text: str
    segments: tuple[str, ...]

    @classmethod
    def compile(cls, text: str) -> WildcardPattern:
        return cls(text=text, segments=tuple(text.lower().split(WILDCARD)))

    def matches(self, candidate: str) -> bool:
        """Return True if *candidate* ends with text matching this pattern."""
        value = candidate.lower()
        tail = self.segments[-1]
        if not value.endswith(tail):
            return False
        if len(self.segments) == 1:
            return True

        # Everything before the last segment floats: the start is unanchored,
        # so leftmost placement of each segment is always safe.
        head = value[: len(value) - len(tail)]
        pos = 0
        for segment in self.segments[:-1]:
            idx = head.find(segment, pos)
            if idx < 0:
                return False
            pos = idx + len(segment)
        return True


@lru_cache(maxsize=1024)
def compile_pattern(text: str) -> WildcardPattern:
    """Compile *text* once; rule documents repeat the same patterns per edge."""
    return WildcardPattern.compile(text)


def matches(pattern: str, candidate: str) -> bool:
    """Return True if *candidate* matches the wildcard *pattern*."""
    return compile_pattern(pattern).matches(candidate)
