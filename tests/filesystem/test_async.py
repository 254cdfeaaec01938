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

"""Tests for the coroutine facade over a filesystem."""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine
from pathlib import Path
from typing import Any

import pytest

from scriptfs.errors import NotAFileError, PathNotFoundError
from scriptfs.filesystem import AsyncFilesystem, MemoryFilesystem, SandboxFilesystem


def _run[T](coro: Coroutine[Any, Any, T]) -> T:
    """Run a coroutine synchronously."""
    return asyncio.run(coro)


class TestAsyncFilesystem:
    def test_round_trip_through_worker_threads(self) -> None:
        fs = AsyncFilesystem(MemoryFilesystem())

        async def scenario() -> tuple[str, list[str], bool]:
            await fs.mkdir("/a/b")
            await fs.write_file("/a/b/c.txt", "hi")
            content = await fs.read_file("/a/b/c.txt")
            matches = await fs.glob(["/a/*/*.txt"])
            exists = await fs.file_exists("/a/b/c.txt")
            return content, matches, exists

        assert _run(scenario()) == ("hi", ["/a/b/c.txt"], True)

    def test_mutations_reach_wrapped_filesystem(self) -> None:
        inner = MemoryFilesystem()
        fs = AsyncFilesystem(inner)

        async def scenario() -> None:
            await fs.mkdir("/src")
            await fs.write_file("/src/f.txt", "x")
            await fs.copy("/src", "/copy")
            await fs.move("/copy", "/moved")
            await fs.change_directory("/moved")
            await fs.delete("/src")

        _run(scenario())

        assert fs.filesystem is inner
        assert inner.read_file("/moved/f.txt") == "x"
        assert inner.directory_exists("/src") is False
        assert fs.get_current_directory() == "/moved"
        assert fs.is_case_sensitive() is True

    def test_read_operations(self) -> None:
        inner = MemoryFilesystem()
        inner.mkdir("/d")
        inner.write_file("/d/f.txt", "abc")
        fs = AsyncFilesystem(inner)

        async def scenario() -> tuple[list[str], bool, str]:
            entries = await fs.read_dir("/d")
            exists = await fs.directory_exists("/d")
            real = await fs.realpath("/d/./f.txt")
            return [entry.name for entry in entries], exists, real

        assert _run(scenario()) == (["f.txt"], True, "/d/f.txt")

    def test_errors_propagate(self) -> None:
        fs = AsyncFilesystem(MemoryFilesystem())

        with pytest.raises(PathNotFoundError):
            _run(fs.read_file("/missing.txt"))
        with pytest.raises(NotAFileError):
            _run(fs.write_file("/dir/", "x"))

    def test_concurrent_reads(self, tmp_path: Path) -> None:
        inner = SandboxFilesystem(tmp_path, case_sensitive=True)
        for index in range(5):
            inner.write_file(f"/f{index}.txt", str(index))
        fs = AsyncFilesystem(inner)

        async def scenario() -> list[str]:
            return await asyncio.gather(
                *(fs.read_file(f"/f{index}.txt") for index in range(5))
            )

        assert _run(scenario()) == ["0", "1", "2", "3", "4"]
