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

"""In-memory filesystem backend.

This module provides a volatile, process-lifetime implementation of the
``Filesystem`` protocol over a tree of :class:`DirectoryNode` and
:class:`FileNode` objects.

Example usage::

    from scriptfs.filesystem import MemoryFilesystem

    fs = MemoryFilesystem()
    fs.mkdir("/a/b")
    fs.write_file("/a/b/c.txt", "hi")
    assert fs.glob(["/a/*/*.txt"]) == ["/a/b/c.txt"]

The tree is not synchronized. Concurrent callers must serialize access to a
single instance themselves.
"""

from __future__ import annotations

from collections.abc import Collection, Mapping, Sequence
from datetime import datetime

from ..clock import SYSTEM_CLOCK, WallClock
from ..errors import (
    InvalidDestinationError,
    NotADirectoryFsError,
    NotAFileError,
    PathNotFoundError,
)
from ..logging import StructuredLogger, get_logger
from ._glob import compile_pattern, search
from ._path import (
    ROOT,
    SEPARATOR,
    base_name,
    is_file_path,
    parent_path,
    resolve_path,
    split_segments,
)
from ._tree import DirectoryNode, FileNode, Location, locate
from ._types import DEFAULT_ENCODING, DirEntry, check_encoding

__all__ = ["MemoryFilesystem"]

logger: StructuredLogger = get_logger(
    __name__, context={"component": "memory_filesystem"}
)


class _TreeGlobSource:
    """Adapts directory nodes to the glob search protocol."""

    def directories(self, node: DirectoryNode) -> Mapping[str, DirectoryNode]:
        return node.directories

    def files(self, node: DirectoryNode) -> Collection[str]:
        return node.files.keys()

    def file_path(self, node: DirectoryNode, name: str) -> str:
        return node.files[name].full_path()


_GLOB_SOURCE = _TreeGlobSource()


class MemoryFilesystem:
    """Filesystem held entirely in memory.

    Args:
        case_sensitive: When False, every path is lower-cased on resolution
            and entries are stored under lower-cased names.
        current_directory: Initial current directory, created if missing.
        clock: Source of modification timestamps.
    """

    def __init__(
        self,
        *,
        case_sensitive: bool = True,
        current_directory: str = ROOT,
        clock: WallClock = SYSTEM_CLOCK,
    ) -> None:
        self._case_sensitive = case_sensitive
        self._clock = clock
        self._root = DirectoryNode(name="", modified_at=clock.utcnow())
        self._current = self._root
        self._current = self._make_directories(
            self._resolve(current_directory), operation="init", path=current_directory
        )

    @property
    def tree(self) -> DirectoryNode:
        """Root node of the tree. Mutating it directly bypasses all checks."""
        return self._root

    def is_case_sensitive(self) -> bool:
        return self._case_sensitive

    # --- Helpers ---

    def _now(self) -> datetime:
        return self._clock.utcnow()

    def _resolve(self, path: str) -> str:
        return resolve_path(
            path,
            current=self._current.full_path(),
            case_sensitive=self._case_sensitive,
        )

    def _locate(self, canonical: str, *, allow_missing_file: bool = False) -> Location:
        return locate(
            self._root,
            split_segments(canonical),
            allow_missing_file=allow_missing_file,
        )

    def _make_directories(
        self, canonical: str, *, operation: str, path: str
    ) -> DirectoryNode:
        """Walk ``canonical`` from the root, creating each missing directory."""
        node = self._root
        timestamp = self._now()
        for segment in split_segments(canonical):
            child = node.directories.get(segment)
            if child is None:
                if segment in node.files:
                    blocker = node.files[segment].full_path()
                    msg = f"Not a directory: {blocker}"
                    raise NotADirectoryFsError(msg, operation=operation, path=path)
                child = node.add_directory(segment, timestamp)
            node = child
        return node

    def _relative_to_current(self, directory: DirectoryNode) -> list[str] | None:
        """Segments leading from ``directory`` down to the current directory, if inside it."""
        segments: list[str] = []
        for node in self._current.lineage():
            if node is directory:
                segments.reverse()
                return segments
            segments.append(node.name)
        return None

    # --- Read Operations ---

    def read_dir(self, path: str) -> list[DirEntry]:
        canonical = self._resolve(path)
        location = self._locate(canonical)
        if not location.found or location.directory is None:
            msg = f"No such directory: {canonical}"
            raise PathNotFoundError(msg, operation="read_dir", path=path)
        if location.file is not None:
            msg = f"Not a directory: {canonical}"
            raise NotADirectoryFsError(msg, operation="read_dir", path=path)

        directory = location.directory
        entries = [_directory_entry(child) for child in directory.directories.values()]
        entries.extend(_file_entry(file) for file in directory.files.values())
        entries.sort(key=lambda entry: entry.name)
        return entries

    def read_file(self, path: str, encoding: str = DEFAULT_ENCODING) -> str:
        check_encoding(encoding, path=path)
        if not is_file_path(path):
            msg = f"Not a file: {path}"
            raise NotAFileError(msg, operation="read_file", path=path)
        canonical = self._resolve(path)
        location = self._locate(canonical)
        if not location.found:
            msg = f"No such file: {canonical}"
            raise PathNotFoundError(msg, operation="read_file", path=path)
        if location.file is None:
            msg = f"Is a directory: {canonical}"
            raise NotAFileError(msg, operation="read_file", path=path)
        return location.file.content

    def file_exists(self, path: str) -> bool:
        if not is_file_path(path):
            return False
        return self._locate(self._resolve(path)).file is not None

    def directory_exists(self, path: str) -> bool:
        location = self._locate(self._resolve(path))
        return location.found and location.file is None

    def realpath(self, path: str) -> str:
        return self._resolve(path)

    def get_current_directory(self) -> str:
        return self._current.full_path()

    def glob(self, patterns: Sequence[str]) -> list[str]:
        compiled = [
            compile_pattern(pattern, case_sensitive=self._case_sensitive)
            for pattern in patterns
        ]
        paths: list[str] = []
        for pattern in compiled:
            anchor = self._root if pattern.absolute else self._current
            paths.extend(search(_GLOB_SOURCE, anchor, pattern.segments))
        return paths

    # --- Write Operations ---

    def write_file(self, path: str, text: str) -> None:
        if not is_file_path(path):
            msg = f"Not a file: {path}"
            raise NotAFileError(msg, operation="write_file", path=path)
        canonical = self._resolve(path)
        location = self._locate(canonical, allow_missing_file=True)
        if location.directory is None:
            missing = parent_path(canonical)
            msg = f"No such directory: {missing}"
            raise PathNotFoundError(msg, operation="write_file", path=path)

        timestamp = self._now()
        if location.file is not None:
            location.file.overwrite(text, timestamp)
        elif location.missing is not None:
            _ = location.directory.add_file(location.missing, text, timestamp)
        else:
            msg = f"Is a directory: {canonical}"
            raise NotAFileError(msg, operation="write_file", path=path)
        logger.debug(
            "Wrote file.",
            event="filesystem.write",
            context={"path": canonical, "chars": len(text)},
        )

    def mkdir(self, path: str) -> None:
        canonical = self._resolve(path)
        _ = self._make_directories(canonical, operation="mkdir", path=path)
        logger.debug(
            "Created directory.", event="filesystem.mkdir", context={"path": canonical}
        )

    def delete(self, path: str) -> None:
        canonical = self._resolve(path)
        location = self._locate(canonical)
        if not location.found or location.directory is None:
            msg = f"No such file or directory: {canonical}"
            raise PathNotFoundError(msg, operation="delete", path=path)

        timestamp = self._now()
        if location.file is not None:
            location.file.detach(timestamp)
        elif location.directory is self._root:
            self._root.clear(timestamp)
            self._current = self._root
        else:
            directory = location.directory
            if self._relative_to_current(directory) is not None:
                self._current = directory.parent or self._root
            directory.detach(timestamp)
        logger.debug(
            "Deleted path.", event="filesystem.delete", context={"path": canonical}
        )

    def copy(self, src: str, dest: str) -> None:
        self._transfer(src, dest, remove_source=False, operation="copy")

    def move(self, src: str, dest: str) -> None:
        self._transfer(src, dest, remove_source=True, operation="move")

    def change_directory(self, path: str) -> None:
        canonical = self._resolve(path)
        location = self._locate(canonical)
        if not location.found or location.directory is None:
            msg = f"No such directory: {canonical}"
            raise PathNotFoundError(msg, operation="change_directory", path=path)
        if location.file is not None:
            msg = f"Not a directory: {canonical}"
            raise NotADirectoryFsError(msg, operation="change_directory", path=path)
        self._current = location.directory

    # --- Copy and move ---

    def _transfer(
        self, src: str, dest: str, *, remove_source: bool, operation: str
    ) -> None:
        src_canonical = self._resolve(src)
        dest_canonical = self._resolve(dest)
        location = self._locate(src_canonical)
        if not location.found or location.directory is None:
            msg = f"No such file or directory: {src_canonical}"
            raise PathNotFoundError(msg, operation=operation, path=src)

        if location.file is not None:
            if not is_file_path(src):
                msg = f"No such directory: {src_canonical}"
                raise PathNotFoundError(msg, operation=operation, path=src)
            self._transfer_file(
                location.file,
                dest,
                dest_canonical,
                remove_source=remove_source,
                operation=operation,
            )
        else:
            self._transfer_directory(
                location.directory,
                src_canonical,
                dest,
                dest_canonical,
                remove_source=remove_source,
                operation=operation,
            )
        logger.debug(
            "Transferred path.",
            event=f"filesystem.{operation}",
            context={"src": src_canonical, "dest": dest_canonical},
        )

    def _transfer_file(
        self,
        file: FileNode,
        dest: str,
        dest_canonical: str,
        *,
        remove_source: bool,
        operation: str,
    ) -> None:
        timestamp = self._now()
        dest_is_directory_shaped = dest.endswith(SEPARATOR)
        target = self._locate(dest_canonical)
        existing: FileNode | None

        if target.file is not None:
            if dest_is_directory_shaped:
                msg = f"Not a directory: {dest_canonical}"
                raise NotADirectoryFsError(msg, operation=operation, path=dest)
            parent, name, existing = target.directory, target.file.name, target.file
        elif target.found:
            parent, name = target.directory, file.name
            if parent is not None and name in parent.directories:
                msg = f"Is a directory: {parent.directories[name].full_path()}"
                raise NotAFileError(msg, operation=operation, path=dest)
            existing = parent.files.get(name) if parent is not None else None
        elif dest_is_directory_shaped:
            parent = self._make_directories(dest_canonical, operation=operation, path=dest)
            name, existing = file.name, None
        else:
            parent = self._make_directories(
                parent_path(dest_canonical), operation=operation, path=dest
            )
            name, existing = base_name(dest_canonical), None

        if existing is file or parent is None:
            return
        if existing is not None:
            existing.overwrite(file.content, timestamp)
        else:
            _ = parent.add_file(name, file.content, timestamp)
        if remove_source:
            file.detach(timestamp)

    def _transfer_directory(  # noqa: PLR0913
        self,
        directory: DirectoryNode,
        src_canonical: str,
        dest: str,
        dest_canonical: str,
        *,
        remove_source: bool,
        operation: str,
    ) -> None:
        timestamp = self._now()
        target = self._locate(dest_canonical)
        if target.file is not None:
            msg = f"Not a directory: {dest_canonical}"
            raise NotADirectoryFsError(msg, operation=operation, path=dest)

        if remove_source:
            if dest_canonical == src_canonical:
                return
            inside = src_canonical == ROOT or dest_canonical.startswith(
                src_canonical + SEPARATOR
            )
            if inside:
                msg = f"Cannot move {src_canonical} into itself: {dest_canonical}"
                raise InvalidDestinationError(msg, operation=operation, path=dest)

        destination = target.directory if target.found else None
        if destination is not None:
            destination.check_merge(
                directory, exclude=directory if remove_source else None
            )

        if not remove_source:
            payload = directory.deep_copy(timestamp)
            if destination is None:
                destination = self._make_directories(
                    dest_canonical, operation=operation, path=dest
                )
            destination.merge(payload, timestamp)
            return

        if destination is None:
            destination = self._make_directories(
                dest_canonical, operation=operation, path=dest
            )
        relative = self._relative_to_current(directory)
        directory.detach(timestamp)
        destination.merge(directory, timestamp)
        if relative is not None:
            moved = locate(destination, relative)
            self._current = moved.directory if moved.directory is not None else destination


def _directory_entry(node: DirectoryNode) -> DirEntry:
    return DirEntry(
        name=node.name,
        path=node.full_path(),
        is_file=False,
        is_directory=True,
        size_bytes=node.size,
        modified_at=node.modified_at,
    )


def _file_entry(node: FileNode) -> DirEntry:
    return DirEntry(
        name=node.name,
        path=node.full_path(),
        is_file=True,
        is_directory=False,
        size_bytes=node.size,
        modified_at=node.modified_at,
    )
