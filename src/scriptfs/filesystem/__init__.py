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

"""Virtual filesystem contract and its two implementations.

This module provides the `Filesystem` protocol that script bindings consume,
so script code can read and write files without knowing whether they live in
memory or on disk.

Example usage::

    from scriptfs.filesystem import Filesystem, MemoryFilesystem

    def load_settings(fs: Filesystem) -> str | None:
        if fs.file_exists("/settings.json"):
            return fs.read_file("/settings.json")
        return None

    load_settings(MemoryFilesystem())

Implementations:

- ``MemoryFilesystem``: Volatile tree of directory and file nodes
- ``SandboxFilesystem``: Host directory that no path may escape

``AsyncFilesystem`` wraps either one with coroutine variants of every
operation.
"""

from __future__ import annotations

from ._async import AsyncFilesystem
from ._glob import GlobPattern, SegmentMatcher, compile_pattern, has_magic
from ._memory import MemoryFilesystem
from ._path import ROOT, SEPARATOR, is_file_path, resolve_path
from ._protocol import Filesystem
from ._sandbox import SandboxFilesystem
from ._types import DEFAULT_ENCODING, SUPPORTED_ENCODINGS, DirEntry

__all__ = [
    "DEFAULT_ENCODING",
    "ROOT",
    "SEPARATOR",
    "SUPPORTED_ENCODINGS",
    "AsyncFilesystem",
    "DirEntry",
    "Filesystem",
    "GlobPattern",
    "MemoryFilesystem",
    "SandboxFilesystem",
    "SegmentMatcher",
    "compile_pattern",
    "has_magic",
    "is_file_path",
    "resolve_path",
]
