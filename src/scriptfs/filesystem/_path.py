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

"""Path resolution shared by every filesystem implementation.

Callers hand the filesystem arbitrary path strings. Before any lookup they
are turned into a *canonical path*: absolute, ``/``-separated, free of empty,
``.`` and ``..`` segments, without a trailing separator, and lower-cased when
the filesystem is case-insensitive. The root is ``"/"``.

Resolution is a pure string transform. The only input taken from the tree is
the canonical path of the current directory.

Functions:
    resolve_path: Canonicalize a path against a current directory
    is_file_path: Whether a raw path is syntactically file-shaped
    host_path_for: Map a canonical path below a host sandbox root
    is_within: Segment-wise containment check for host paths
"""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path
from typing import Final

from ..errors import SandboxViolationError

SEPARATOR: Final[str] = "/"
ROOT: Final[str] = "/"


def strip_trailing_separators(path: str) -> str:
    """Remove every trailing separator, keeping a lone ``"/"`` as the root."""
    stripped = path.rstrip(SEPARATOR)
    if not stripped and path.startswith(SEPARATOR):
        return ROOT
    return stripped


def is_file_path(path: str) -> bool:
    """Return True when ``path`` is non-empty and does not end in a separator.

    Directory-shaped paths (``"a/b/"``) never name a file, whatever exists in
    the tree.
    """
    return bool(path) and not path.endswith(SEPARATOR)


def fold_case(value: str, *, case_sensitive: bool) -> str:
    return value if case_sensitive else value.lower()


def split_segments(path: str) -> list[str]:
    """Split a path into its non-empty segments."""
    return [segment for segment in path.split(SEPARATOR) if segment]


def join_segments(segments: Sequence[str]) -> str:
    """Build a canonical absolute path from segments."""
    return SEPARATOR + SEPARATOR.join(segments)


def parent_path(canonical: str) -> str:
    """Return the canonical parent of a canonical path (the root is its own parent)."""
    return join_segments(split_segments(canonical)[:-1])


def base_name(canonical: str) -> str:
    """Return the final segment of a canonical path, or ``""`` for the root."""
    segments = split_segments(canonical)
    return segments[-1] if segments else ""


def resolve_path(
    path: str,
    *,
    current: str,
    case_sensitive: bool,
    confined: bool = False,
    operation: str | None = None,
) -> str:
    """Resolve ``path`` into a canonical absolute path.

    Args:
        path: Raw caller-supplied path, absolute or relative.
        current: Canonical path of the current directory.
        case_sensitive: When False every segment is lower-cased.
        confined: When True a ``..`` that climbs above the root raises
            instead of being clamped at the root.
        operation: Operation name recorded on raised errors.

    Returns:
        The canonical path. Resolving a canonical path returns it unchanged.

    Raises:
        SandboxViolationError: ``confined`` is set and ``path`` climbs above
            the root.

    Examples:
        >>> resolve_path("b/c/", current="/a", case_sensitive=True)
        '/a/b/c'
        >>> resolve_path("/A/./B", current="/", case_sensitive=False)
        '/a/b'
        >>> resolve_path("../../x", current="/a", case_sensitive=True)
        '/x'
    """
    trimmed = fold_case(strip_trailing_separators(path), case_sensitive=case_sensitive)
    if trimmed.startswith(SEPARATOR):
        raw_segments = split_segments(trimmed)
    else:
        raw_segments = [*split_segments(current), *split_segments(trimmed)]

    result: list[str] = []
    for segment in raw_segments:
        if segment == ".":
            continue
        if segment == "..":
            if result:
                _ = result.pop()
            elif confined:
                msg = f"Path escapes the sandbox root: {path}"
                raise SandboxViolationError(msg, operation=operation, path=path)
            continue
        result.append(segment)
    return join_segments(result)


def host_path_for(root: Path, canonical: str) -> Path:
    """Map a canonical path onto the host below ``root`` (no symlink resolution)."""
    return root.joinpath(*split_segments(canonical))


def is_within(candidate: Path, root: Path) -> bool:
    """Return True when ``candidate`` equals ``root`` or lies below it.

    Comparison is on whole path components, so ``/data2/evil`` is not within
    ``/data`` even though the strings share a prefix.
    """
    return candidate.is_relative_to(root)


__all__ = [
    "ROOT",
    "SEPARATOR",
    "base_name",
    "fold_case",
    "host_path_for",
    "is_file_path",
    "is_within",
    "join_segments",
    "parent_path",
    "resolve_path",
    "split_segments",
    "strip_trailing_separators",
]
