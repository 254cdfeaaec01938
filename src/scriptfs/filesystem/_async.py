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

"""Asynchronous variants of the filesystem operations.

Script bindings expose every operation twice: a blocking function and a
coroutine. The coroutine runs the blocking call in a worker thread through
:func:`asyncio.to_thread` and resolves with its result, or raises the same
:class:`~scriptfs.errors.FilesystemError`. No locking is added; callers that
issue concurrent mutations against one filesystem must serialize them.

Example usage::

    fs = AsyncFilesystem(MemoryFilesystem())
    await fs.write_file("/notes.txt", "hello")
    assert await fs.read_file("/notes.txt") == "hello"
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence

from ._protocol import Filesystem
from ._types import DEFAULT_ENCODING, DirEntry


class AsyncFilesystem:
    """Coroutine facade over a synchronous :class:`Filesystem`."""

    def __init__(self, filesystem: Filesystem) -> None:
        self._filesystem = filesystem

    @property
    def filesystem(self) -> Filesystem:
        """The wrapped synchronous filesystem."""
        return self._filesystem

    def is_case_sensitive(self) -> bool:
        return self._filesystem.is_case_sensitive()

    def get_current_directory(self) -> str:
        return self._filesystem.get_current_directory()

    async def read_dir(self, path: str) -> Sequence[DirEntry]:
        return await asyncio.to_thread(self._filesystem.read_dir, path)

    async def read_file(self, path: str, encoding: str = DEFAULT_ENCODING) -> str:
        return await asyncio.to_thread(self._filesystem.read_file, path, encoding)

    async def file_exists(self, path: str) -> bool:
        return await asyncio.to_thread(self._filesystem.file_exists, path)

    async def directory_exists(self, path: str) -> bool:
        return await asyncio.to_thread(self._filesystem.directory_exists, path)

    async def realpath(self, path: str) -> str:
        return await asyncio.to_thread(self._filesystem.realpath, path)

    async def glob(self, patterns: Sequence[str]) -> list[str]:
        return await asyncio.to_thread(self._filesystem.glob, list(patterns))

    async def write_file(self, path: str, text: str) -> None:
        await asyncio.to_thread(self._filesystem.write_file, path, text)

    async def mkdir(self, path: str) -> None:
        await asyncio.to_thread(self._filesystem.mkdir, path)

    async def delete(self, path: str) -> None:
        await asyncio.to_thread(self._filesystem.delete, path)

    async def copy(self, src: str, dest: str) -> None:
        await asyncio.to_thread(self._filesystem.copy, src, dest)

    async def move(self, src: str, dest: str) -> None:
        await asyncio.to_thread(self._filesystem.move, src, dest)

    async def change_directory(self, path: str) -> None:
        await asyncio.to_thread(self._filesystem.change_directory, path)


__all__ = ["AsyncFilesystem"]
