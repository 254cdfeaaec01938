# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Segment-wise glob matching and recursive tree search.

Patterns are split on ``/`` and each segment is matched against the entries
of one directory level. A segment with no metacharacters is a literal and is
looked up by exact name; any other segment is compiled into a matcher
supporting:

- ``*`` any run of characters, ``?`` any single character
- ``[abc]``, ``[a-z]``, ``[!a-z]`` / ``[^a-z]`` character classes
- ``{ts,js}`` alternatives, which may nest and contain other wildcards
- ``\\`` escaping the next character

Separators never appear inside a segment, so no wildcard crosses a
directory boundary. The search itself is written once against the
:class:`GlobSource` protocol so the in-memory tree and the host sandbox walk
patterns identically.

Example::

    pattern = compile_pattern("/src/*/*.{ts,js}", case_sensitive=True)
    paths = search(source, root_node, pattern.segments)
"""

from __future__ import annotations

import re
from collections.abc import Collection, Mapping, Sequence
from dataclasses import dataclass
from typing import Final, Protocol

from ..errors import PatternError
from ._path import SEPARATOR, fold_case, split_segments, strip_trailing_separators

_METACHARACTERS: Final[frozenset[str]] = frozenset("?*[{\\")


def has_magic(segment: str) -> bool:
    """Return True when ``segment`` contains a wildcard metacharacter."""
    return any(char in _METACHARACTERS for char in segment)


@dataclass(slots=True, frozen=True)
class SegmentMatcher:
    """One compiled pattern segment.

    Attributes:
        source: The segment text as written in the pattern.
        literal: Case-folded segment text, used for exact-name lookups.
        regex: Compiled matcher, or None for a literal segment.
    """

    source: str
    literal: str
    regex: re.Pattern[str] | None = None

    @property
    def is_literal(self) -> bool:
        return self.regex is None

    def matches(self, name: str) -> bool:
        if self.regex is None:
            return name == self.literal
        return self.regex.fullmatch(name) is not None


@dataclass(slots=True, frozen=True)
class GlobPattern:
    """A compiled path pattern: whether it is rooted, and its segments."""

    source: str
    absolute: bool
    segments: tuple[SegmentMatcher, ...]


def compile_segment(segment: str, *, case_sensitive: bool = True) -> SegmentMatcher:
    """Compile a single pattern segment.

    Raises:
        PatternError: Unbalanced ``[`` or ``{``, a reversed range, or a
            trailing escape.
    """
    literal = fold_case(segment, case_sensitive=case_sensitive)
    if not has_magic(segment):
        return SegmentMatcher(source=segment, literal=literal)
    flags = 0 if case_sensitive else re.IGNORECASE
    try:
        regex = re.compile(_translate(segment), flags)
    except re.error as err:
        raise PatternError(f"Invalid glob segment {segment!r}: {err}") from err
    return SegmentMatcher(source=segment, literal=literal, regex=regex)


def compile_pattern(pattern: str, *, case_sensitive: bool = True) -> GlobPattern:
    """Compile a full path pattern, stripping trailing separators.

    ``.`` segments are dropped. Every segment is compiled up front so an
    invalid pattern fails before any traversal.
    """
    trimmed = strip_trailing_separators(pattern)
    try:
        segments = tuple(
            compile_segment(segment, case_sensitive=case_sensitive)
            for segment in split_segments(trimmed)
            if segment != "."
        )
    except PatternError as err:
        raise PatternError(str(err), operation="glob", path=pattern) from err
    return GlobPattern(
        source=pattern,
        absolute=trimmed.startswith(SEPARATOR),
        segments=segments,
    )


def _translate(segment: str) -> str:
    parts: list[str] = []
    depth = 0
    index = 0
    length = len(segment)
    while index < length:
        char = segment[index]
        if char == "\\":
            if index + 1 >= length:
                raise PatternError(f"Trailing escape in glob segment: {segment!r}")
            parts.append(re.escape(segment[index + 1]))
            index += 2
            continue
        if char == "*":
            parts.append(".*")
        elif char == "?":
            parts.append(".")
        elif char == "[":
            class_expr, index = _translate_class(segment, index)
            parts.append(class_expr)
            continue
        elif char == "{":
            depth += 1
            parts.append("(?:")
        elif char == "," and depth:
            parts.append("|")
        elif char == "}" and depth:
            depth -= 1
            parts.append(")")
        else:
            parts.append(re.escape(char))
        index += 1
    if depth:
        raise PatternError(f"Unclosed '{{' in glob segment: {segment!r}")
    return "".join(parts)


def _translate_class(segment: str, start: int) -> tuple[str, int]:
    """Translate the ``[...]`` class opening at ``start``; return it and the next index."""
    index = start + 1
    length = len(segment)
    negate = index < length and segment[index] in "!^"
    if negate:
        index += 1
    items: list[str] = []
    first = True
    while index < length and (segment[index] != "]" or first):
        first = False
        low = segment[index]
        if low == "\\" and index + 1 < length:
            index += 1
            low = segment[index]
        if index + 2 < length and segment[index + 1] == "-" and segment[index + 2] != "]":
            high = segment[index + 2]
            if high < low:
                raise PatternError(
                    f"Reversed range {low}-{high} in glob segment: {segment!r}"
                )
            items.append(f"{re.escape(low)}-{re.escape(high)}")
            index += 3
        else:
            items.append(re.escape(low))
            index += 1
    if index >= length:
        raise PatternError(f"Unclosed '[' in glob segment: {segment!r}")
    prefix = "^" if negate else ""
    return f"[{prefix}{''.join(items)}]", index + 1


class GlobSource[NodeT](Protocol):
    """Read-only view of a directory tree that :func:`search` can walk."""

    def directories(self, node: NodeT) -> Mapping[str, NodeT]:
        """Child directories of ``node`` by name."""
        ...

    def files(self, node: NodeT) -> Collection[str]:
        """Names of the files directly inside ``node``."""
        ...

    def file_path(self, node: NodeT, name: str) -> str:
        """Canonical path of file ``name`` inside ``node``."""
        ...


def search[NodeT](
    source: GlobSource[NodeT],
    node: NodeT,
    segments: Sequence[SegmentMatcher],
) -> list[str]:
    """Return the paths of files under ``node`` matched by ``segments``.

    Literal segments descend into the same-named directory, or name a file
    when they are the final segment. Wildcard segments are tried against
    every entry at their level: matching directories are searched with the
    remaining segments and, at the final segment, matching files are
    collected. Entries are visited in name order, directories before files.
    """
    if not segments:
        return []
    head, rest = segments[0], segments[1:]
    children = source.directories(node)
    if head.is_literal:
        child = children.get(head.literal)
        if child is not None:
            return search(source, child, rest)
        if not rest and head.literal in source.files(node):
            return [source.file_path(node, head.literal)]
        return []

    paths: list[str] = []
    for name in sorted(children):
        if head.matches(name):
            paths.extend(search(source, children[name], rest))
    if not rest:
        paths.extend(
            source.file_path(node, name)
            for name in sorted(source.files(node))
            if head.matches(name)
        )
    return paths


__all__ = [
    "GlobPattern",
    "GlobSource",
    "SegmentMatcher",
    "compile_pattern",
    "compile_segment",
    "has_magic",
    "search",
]
