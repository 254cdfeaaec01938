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

"""Base exception hierarchy for :mod:`scriptfs`."""

from __future__ import annotations


class FilesystemError(Exception):
    """Base class for all scriptfs exceptions.

    Every error identifies the failing ``operation`` and ``path``. Formatting
    a user-facing message from these is the caller's job; the string form is
    a short diagnostic only.

    Example:
        Catch any scriptfs-specific error::

            try:
                fs.read_file("/missing.txt")
            except FilesystemError as e:
                logger.error("Filesystem error in %s: %s", e.operation, e.path)

    Note:
        Subclasses also inherit from the closest built-in ``OSError`` or
        ``ValueError`` subclass, so callers written against the standard
        library keep working.
    """

    def __init__(
        self,
        message: str,
        *,
        operation: str | None = None,
        path: str | None = None,
    ) -> None:
        super().__init__(message)
        self.operation = operation
        self.path = path


class PathNotFoundError(FilesystemError, FileNotFoundError):
    """Raised when a path segment, file, or directory does not exist."""


class NotADirectoryFsError(FilesystemError, NotADirectoryError):
    """Raised when an operation needs a directory but the path is a file."""


class NotAFileError(FilesystemError, IsADirectoryError):
    """Raised when an operation needs a file but the path is a directory.

    Paths ending in a separator are directory-shaped and raise this error
    from file operations even when nothing exists at the path.
    """


class SandboxViolationError(FilesystemError, PermissionError):
    """Raised when a resolved path escapes the sandbox root.

    Only the host-backed filesystem raises this. Containment is checked on
    whole path segments after symlinks are resolved, so a sibling directory
    that merely shares the root as a string prefix is still outside.
    """


class PatternError(FilesystemError, ValueError):
    """Raised when a glob pattern segment fails to compile."""


class UnsupportedEncodingError(FilesystemError, ValueError):
    """Raised when ``read_file`` is asked for an encoding other than UTF-8."""


class InvalidDestinationError(FilesystemError, ValueError):
    """Raised when a directory would be moved into itself or a descendant."""


class ConfigError(FilesystemError, ValueError):
    """Raised when the filesystem configuration is invalid."""


__all__ = [
    "ConfigError",
    "FilesystemError",
    "InvalidDestinationError",
    "NotADirectoryFsError",
    "NotAFileError",
    "PathNotFoundError",
    "PatternError",
    "SandboxViolationError",
    "UnsupportedEncodingError",
]
