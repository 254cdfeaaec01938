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

"""Filesystem protocol consumed by the script runtime bindings.

This module provides a unified `Filesystem` protocol with exactly two
implementations, chosen when the filesystem is constructed:

- `scriptfs.filesystem.MemoryFilesystem`: Volatile in-memory tree
- `scriptfs.filesystem.SandboxFilesystem`: Host directory confined to a root

The binding layer wraps each method as a synchronous and an asynchronous
script function and turns raised `FilesystemError`s into script exceptions.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol, runtime_checkable

from ._types import DirEntry


@runtime_checkable
class Filesystem(Protocol):
    """Unified filesystem contract.

    Paths are ``/``-separated strings, absolute or relative to the current
    directory. Both implementations resolve them identically before use; see
    :func:`scriptfs.filesystem.resolve_path`.

    Example::

        def load_config(fs: Filesystem) -> str | None:
            if fs.file_exists("/config.json"):
                return fs.read_file("/config.json")
            return None
    """

    def is_case_sensitive(self) -> bool:
        """Whether paths differing only in case name different entries."""
        ...

    # --- Read Operations ---

    def read_dir(self, path: str) -> Sequence[DirEntry]:
        """List the immediate children of a directory, sorted by name.

        Raises:
            PathNotFoundError: Path does not exist.
            NotADirectoryFsError: Path is a file.
        """
        ...

    def read_file(self, path: str, encoding: str = "utf-8") -> str:
        """Return the full text content of a file.

        Raises:
            UnsupportedEncodingError: ``encoding`` is not ``utf8``/``utf-8``.
            NotAFileError: Path is a directory or ends in a separator.
            PathNotFoundError: Path does not exist.
        """
        ...

    def file_exists(self, path: str) -> bool:
        """Return True if ``path`` names a file. Directory-shaped paths never do."""
        ...

    def directory_exists(self, path: str) -> bool:
        """Return True if ``path`` names a directory."""
        ...

    def realpath(self, path: str) -> str:
        """Return the canonical resolved form of ``path``."""
        ...

    def get_current_directory(self) -> str:
        """Return the canonical path of the current directory."""
        ...

    def glob(self, patterns: Sequence[str]) -> list[str]:
        """Return the files matching each pattern, concatenated in pattern order.

        Paths matched by more than one pattern appear once per pattern.

        Raises:
            PatternError: A pattern segment failed to compile.
        """
        ...

    # --- Write Operations ---

    def write_file(self, path: str, text: str) -> None:
        """Create or overwrite a file. Its parent directory must already exist.

        Raises:
            NotAFileError: Path is a directory or ends in a separator.
            PathNotFoundError: The parent directory chain does not exist.
        """
        ...

    def mkdir(self, path: str) -> None:
        """Create a directory and any missing ancestors. Existing paths are fine.

        Raises:
            NotADirectoryFsError: A segment along the path is a file.
        """
        ...

    def delete(self, path: str) -> None:
        """Delete a file or a directory tree. Deleting the root empties it.

        Raises:
            PathNotFoundError: Path does not exist.
        """
        ...

    def copy(self, src: str, dest: str) -> None:
        """Copy a file, or merge a directory's contents into ``dest``.

        Colliding files at the destination are overwritten.

        Raises:
            PathNotFoundError: Source does not exist.
            NotADirectoryFsError: A directory would be merged onto a file.
            NotAFileError: A file would be merged onto a directory.
        """
        ...

    def move(self, src: str, dest: str) -> None:
        """Copy ``src`` to ``dest`` as :meth:`copy` does, then delete ``src``.

        Raises:
            InvalidDestinationError: ``dest`` lies inside the source directory.
        """
        ...

    def change_directory(self, path: str) -> None:
        """Point the current directory at an existing directory.

        Raises:
            PathNotFoundError: Path does not exist.
            NotADirectoryFsError: Path is a file.
        """
        ...


__all__ = ["Filesystem"]
