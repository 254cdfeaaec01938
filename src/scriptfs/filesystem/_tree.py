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

"""Directory and file nodes of the in-memory tree.

A directory owns its child directories and files through two name-keyed
mappings. Children point back at their parent through a weak reference that
is only used to rebuild paths and to push size and timestamp changes upward;
it never keeps a parent alive.

Two invariants hold after every public mutation:

- A directory's ``size`` is the sum of the sizes of every file below it.
- A directory's ``modified_at`` is at least the timestamp of every
  structural change made to it or anywhere beneath it.
"""

from __future__ import annotations

import weakref
from collections.abc import Iterator, Sequence
from dataclasses import dataclass, field
from datetime import datetime

from ..errors import NotADirectoryFsError, NotAFileError
from ._path import SEPARATOR, join_segments
from ._types import content_size


def _empty_directories() -> dict[str, DirectoryNode]:
    return {}


def _empty_files() -> dict[str, FileNode]:
    return {}


@dataclass(slots=True, eq=False, weakref_slot=True)
class DirectoryNode:
    """A directory in the in-memory tree.

    Attributes:
        name: Directory name (empty for the root).
        modified_at: Last structural change at or below this directory.
        directories: Owned child directories by name.
        files: Owned files by name.
        size: Aggregate size of every file below this directory.
    """

    name: str
    modified_at: datetime
    directories: dict[str, DirectoryNode] = field(default_factory=_empty_directories)
    files: dict[str, FileNode] = field(default_factory=_empty_files)
    size: int = 0
    _parent: weakref.ReferenceType[DirectoryNode] | None = field(
        default=None, repr=False
    )

    @property
    def parent(self) -> DirectoryNode | None:
        return self._parent() if self._parent is not None else None

    @property
    def is_root(self) -> bool:
        return self._parent is None

    def full_path(self) -> str:
        segments: list[str] = []
        node: DirectoryNode | None = self
        while node is not None and not node.is_root:
            segments.append(node.name)
            node = node.parent
        segments.reverse()
        return join_segments(segments)

    def lineage(self) -> Iterator[DirectoryNode]:
        """Yield this directory followed by each of its ancestors up to the root."""
        node: DirectoryNode | None = self
        while node is not None:
            yield node
            node = node.parent

    def is_descendant_of(self, other: DirectoryNode) -> bool:
        return any(node is other for node in self.lineage())

    def record_change(self, delta: int, timestamp: datetime) -> None:
        """Apply a size delta and a change timestamp here and in every ancestor."""
        for node in self.lineage():
            node.size += delta
            if timestamp > node.modified_at:
                node.modified_at = timestamp

    # --- Construction ---

    def add_directory(self, name: str, timestamp: datetime) -> DirectoryNode:
        child = DirectoryNode(name=name, modified_at=timestamp)
        self.attach_directory(child, timestamp)
        return child

    def add_file(self, name: str, content: str, timestamp: datetime) -> FileNode:
        file = FileNode(name=name, content=content, modified_at=timestamp)
        self.attach_file(file, timestamp)
        return file

    def attach_directory(self, child: DirectoryNode, timestamp: datetime) -> None:
        self.directories[child.name] = child
        child._parent = weakref.ref(self)
        self.record_change(child.size, timestamp)

    def attach_file(self, file: FileNode, timestamp: datetime) -> None:
        self.files[file.name] = file
        file._parent = weakref.ref(self)
        self.record_change(file.size, timestamp)

    # --- Removal ---

    def detach(self, timestamp: datetime) -> None:
        """Remove this directory from its parent. The root cannot be detached."""
        parent = self.parent
        if parent is None or parent.directories.get(self.name) is not self:
            return
        del parent.directories[self.name]
        self._parent = None
        parent.record_change(-self.size, timestamp)

    def clear(self, timestamp: datetime) -> None:
        """Drop every child directory and file, keeping this node in place."""
        removed = self.size
        self.directories = {}
        self.files = {}
        self.record_change(-removed, timestamp)

    # --- Copy and merge ---

    def deep_copy(self, timestamp: datetime) -> DirectoryNode:
        """Return a detached, structurally independent clone stamped with ``timestamp``."""
        clone = DirectoryNode(name=self.name, modified_at=timestamp, size=self.size)
        for name, child in self.directories.items():
            child_clone = child.deep_copy(timestamp)
            child_clone._parent = weakref.ref(clone)
            clone.directories[name] = child_clone
        for name, file in self.files.items():
            file_clone = FileNode(name=file.name, content=file.content, modified_at=timestamp)
            file_clone._parent = weakref.ref(clone)
            clone.files[name] = file_clone
        return clone

    def check_merge(
        self, source: DirectoryNode, *, exclude: DirectoryNode | None = None
    ) -> None:
        """Raise if merging ``source`` here would put a file and a directory on one name.

        ``exclude`` is treated as already absent from this side of the merge.
        Nothing is mutated.

        Raises:
            NotADirectoryFsError: A source directory would land on a file.
            NotAFileError: A source file would land on a directory.
        """
        for name, child in source.directories.items():
            if name in self.files:
                path = self.files[name].full_path()
                msg = f"Cannot merge a directory onto a file: {path}"
                raise NotADirectoryFsError(msg, path=path)
            existing = self.directories.get(name)
            if existing is not None and existing is not exclude:
                existing.check_merge(child, exclude=exclude)
        for name in source.files:
            existing = self.directories.get(name)
            if existing is not None and existing is not exclude:
                path = existing.full_path()
                msg = f"Cannot merge a file onto a directory: {path}"
                raise NotAFileError(msg, path=path)

    def merge(
        self, source: DirectoryNode, timestamp: datetime, *, overwrite: bool = True
    ) -> None:
        """Merge the contents of a detached ``source`` directory into this one.

        Same-named directories merge recursively; other source nodes are
        adopted by reference. A colliding file takes the source content when
        ``overwrite`` is set. ``source`` is left empty.
        """
        for name, child in list(source.directories.items()):
            existing = self.directories.get(name)
            if existing is None:
                self.attach_directory(child, timestamp)
            else:
                existing.merge(child, timestamp, overwrite=overwrite)
        for name, file in list(source.files.items()):
            existing_file = self.files.get(name)
            if existing_file is None:
                self.attach_file(file, timestamp)
            elif overwrite:
                existing_file.overwrite(file.content, timestamp)
        source.directories = {}
        source.files = {}
        source.size = 0

    # --- Navigation ---

    def iter_files(self) -> Iterator[FileNode]:
        """Yield every file below this directory, depth first."""
        yield from self.files.values()
        for child in self.directories.values():
            yield from child.iter_files()


@dataclass(slots=True, eq=False, weakref_slot=True)
class FileNode:
    """A text file in the in-memory tree.

    ``size`` is the UTF-8 length of ``content``, computed once whenever the
    content is set.
    """

    name: str
    content: str
    modified_at: datetime
    size: int = field(init=False, default=0)
    _parent: weakref.ReferenceType[DirectoryNode] | None = field(
        default=None, repr=False
    )

    def __post_init__(self) -> None:
        self.size = content_size(self.content)

    @property
    def parent(self) -> DirectoryNode | None:
        return self._parent() if self._parent is not None else None

    def full_path(self) -> str:
        parent = self.parent
        if parent is None:
            return SEPARATOR + self.name
        prefix = parent.full_path()
        return f"{prefix}{self.name}" if prefix == SEPARATOR else f"{prefix}/{self.name}"

    def overwrite(self, content: str, timestamp: datetime) -> None:
        size = content_size(content)
        delta = size - self.size
        self.content = content
        self.size = size
        if timestamp > self.modified_at:
            self.modified_at = timestamp
        parent = self.parent
        if parent is not None:
            parent.record_change(delta, timestamp)

    def detach(self, timestamp: datetime) -> None:
        parent = self.parent
        if parent is None or parent.files.get(self.name) is not self:
            return
        del parent.files[self.name]
        self._parent = None
        parent.record_change(-self.size, timestamp)


@dataclass(slots=True, frozen=True)
class Location:
    """Outcome of :func:`locate`.

    Attributes:
        directory: The located directory, or the directory containing the
            located or prospective file. None when nothing was found.
        file: The located file, if the path names one.
        missing: Name of the absent final segment when the caller allowed a
            prospective file and only the final segment was missing.
    """

    directory: DirectoryNode | None = None
    file: FileNode | None = None
    missing: str | None = None

    @property
    def found(self) -> bool:
        return self.directory is not None and self.missing is None


def locate(
    root: DirectoryNode,
    segments: Sequence[str],
    *,
    allow_missing_file: bool = False,
) -> Location:
    """Walk ``segments`` down from ``root``.

    At each segment a child directory wins over a file of the same name. A
    file only matches as the final segment; files are not traversable. With
    ``allow_missing_file`` a missing final segment yields its would-be parent
    directory and the missing name.
    """
    node = root
    last = len(segments) - 1
    for index, segment in enumerate(segments):
        child = node.directories.get(segment)
        if child is not None:
            node = child
            continue
        file = node.files.get(segment)
        if file is not None and index == last:
            return Location(directory=node, file=file)
        if file is None and index == last and allow_missing_file:
            return Location(directory=node, missing=segment)
        return Location()
    return Location(directory=node)


__all__ = [
    "DirectoryNode",
    "FileNode",
    "Location",
    "locate",
]
