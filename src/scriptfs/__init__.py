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

"""Pluggable virtual filesystem for embedded script runtimes."""

from __future__ import annotations

from .config import FilesystemConfig, build_filesystem, load_config
from .errors import (
    ConfigError,
    FilesystemError,
    InvalidDestinationError,
    NotADirectoryFsError,
    NotAFileError,
    PathNotFoundError,
    PatternError,
    SandboxViolationError,
    UnsupportedEncodingError,
)
from .filesystem import (
    AsyncFilesystem,
    DirEntry,
    Filesystem,
    MemoryFilesystem,
    SandboxFilesystem,
)

__all__ = [
    "AsyncFilesystem",
    "ConfigError",
    "DirEntry",
    "Filesystem",
    "FilesystemConfig",
    "FilesystemError",
    "InvalidDestinationError",
    "MemoryFilesystem",
    "NotADirectoryFsError",
    "NotAFileError",
    "PathNotFoundError",
    "PatternError",
    "SandboxFilesystem",
    "SandboxViolationError",
    "UnsupportedEncodingError",
    "build_filesystem",
    "load_config",
]
