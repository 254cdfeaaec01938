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

"""Core filesystem types shared by the ``Filesystem`` implementations.

Constants:

- ``SUPPORTED_ENCODINGS``: Encoding tokens accepted by ``read_file``
- ``DEFAULT_ENCODING``: Encoding used when the caller does not pass one
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Final

from ..errors import UnsupportedEncodingError

DEFAULT_ENCODING: Final[str] = "utf-8"
SUPPORTED_ENCODINGS: Final[frozenset[str]] = frozenset({"utf8", "utf-8"})


@dataclass(slots=True, frozen=True)
class DirEntry:
    """Directory listing entry returned by ``Filesystem.read_dir()``.

    Attributes:
        name: Entry name without path (e.g., "main.ts").
        path: Canonical absolute path of the entry (e.g., "/src/main.ts").
        is_file: True if this entry is a regular file.
        is_directory: True if this entry is a directory.
        is_symlink: True if the host entry is a symbolic link. Always False
            for the in-memory tree, which has no links.
        size_bytes: UTF-8 size of a file, or the aggregate size of every file
            below a directory. Host directories report 0.
        modified_at: Last modification time, UTC.

    Example::

        for entry in fs.read_dir("/src"):
            if entry.is_file and entry.name.endswith(".ts"):
                print(entry.path, entry.size_bytes)
    """

    name: str
    path: str
    is_file: bool
    is_directory: bool
    is_symlink: bool = False
    size_bytes: int = 0
    modified_at: datetime | None = None


def check_encoding(encoding: str, *, path: str) -> None:
    """Reject any encoding token other than ``utf8``/``utf-8`` (case-insensitive).

    Raises:
        UnsupportedEncodingError: The encoding is not UTF-8.
    """
    if encoding.lower() not in SUPPORTED_ENCODINGS:
        msg = f"Unsupported encoding {encoding!r}: only utf-8 is supported"
        raise UnsupportedEncodingError(msg, operation="read_file", path=path)


def content_size(content: str) -> int:
    """Return the UTF-8 encoded size of ``content`` in bytes."""
    return len(content.encode("utf-8"))


__all__ = [
    "DEFAULT_ENCODING",
    "SUPPORTED_ENCODINGS",
    "DirEntry",
    "check_encoding",
    "content_size",
]
