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

"""Tests for the in-memory filesystem."""

from __future__ import annotations

import logging

import pytest
from hypothesis import given, settings, strategies as st

from scriptfs.clock import FakeClock
from scriptfs.errors import PathNotFoundError
from scriptfs.filesystem import Filesystem, MemoryFilesystem
from scriptfs.filesystem._tree import DirectoryNode
from tests.helpers.filesystem_contract import FilesystemContractSuite, populate


class TestMemoryFilesystemContract(FilesystemContractSuite):
    """Run the shared contract suite against MemoryFilesystem."""

    @pytest.fixture
    def fs(self) -> Filesystem:
        return MemoryFilesystem()


def _walk(directory: DirectoryNode) -> list[DirectoryNode]:
    nodes = [directory]
    for child in directory.directories.values():
        nodes.extend(_walk(child))
    return nodes


def _assert_size_invariant(root: DirectoryNode) -> None:
    for directory in _walk(root):
        expected = sum(len(f.content.encode("utf-8")) for f in directory.iter_files())
        assert directory.size == expected, directory.full_path()


class TestConstruction:
    def test_initial_current_directory_is_created(self) -> None:
        fs = MemoryFilesystem(current_directory="/home/user")

        assert fs.get_current_directory() == "/home/user"
        assert fs.directory_exists("/home")

    def test_defaults_to_case_sensitive(self) -> None:
        assert MemoryFilesystem().is_case_sensitive() is True


class TestCaseInsensitive:
    def test_paths_differing_in_case_name_one_file(self) -> None:
        fs = MemoryFilesystem(case_sensitive=False)

        fs.write_file("/A.txt", "upper")
        fs.write_file("/a.txt", "lower")

        assert fs.read_file("/A.TXT") == "lower"
        assert [entry.name for entry in fs.read_dir("/")] == ["a.txt"]
        assert fs.realpath("/Dir/Sub/../File.TXT") == "/dir/file.txt"

    def test_glob_ignores_case(self) -> None:
        fs = MemoryFilesystem(case_sensitive=False)
        populate(fs, {"/Src/Main.TS": ""})

        assert fs.glob(["/SRC/*.ts"]) == ["/src/main.ts"]

    def test_case_sensitive_keeps_both(self) -> None:
        fs = MemoryFilesystem(case_sensitive=True)

        fs.write_file("/A.txt", "upper")
        fs.write_file("/a.txt", "lower")

        assert fs.read_file("/A.txt") == "upper"
        assert fs.read_file("/a.txt") == "lower"
        assert fs.file_exists("/A.TXT") is False


class TestParentSegments:
    def test_dot_dot_is_clamped_at_root(self) -> None:
        fs = MemoryFilesystem()
        fs.write_file("/top.txt", "t")

        assert fs.read_file("/../../top.txt") == "t"
        assert fs.realpath("../..") == "/"


class TestSizeAndTimestamps:
    def test_sizes_count_utf8_bytes_on_every_ancestor(self) -> None:
        fs = MemoryFilesystem()
        fs.mkdir("/a/b")
        fs.write_file("/a/b/c.txt", "é✓")
        fs.write_file("/a/d.txt", "xy")

        assert fs.tree.size == 7
        entries = {entry.name: entry for entry in fs.read_dir("/a")}
        assert entries["b"].size_bytes == 5
        assert entries["d.txt"].size_bytes == 2

    def test_overwrite_and_delete_adjust_sizes(self) -> None:
        fs = MemoryFilesystem()
        fs.mkdir("/a")
        fs.write_file("/a/f.txt", "12345")
        fs.write_file("/a/f.txt", "12")

        assert fs.tree.size == 2

        fs.delete("/a/f.txt")

        assert fs.tree.size == 0

    def test_move_and_copy_keep_sizes_consistent(self) -> None:
        fs = MemoryFilesystem()
        populate(fs, {"/a/b/c.txt": "abc", "/a/d.txt": "d", "/z/d.txt": "zzzz"})

        fs.copy("/a", "/z")
        _assert_size_invariant(fs.tree)
        fs.move("/z/b", "/moved")
        _assert_size_invariant(fs.tree)
        fs.move("/a/b", "/a")
        _assert_size_invariant(fs.tree)

        assert fs.tree.size == sum(
            len(f.content.encode("utf-8")) for f in fs.tree.iter_files()
        )

    def test_modification_time_propagates_to_ancestors(self) -> None:
        clock = FakeClock()
        fs = MemoryFilesystem(clock=clock)
        fs.mkdir("/a/b")
        created = clock.utcnow()

        clock.advance(30)
        fs.write_file("/a/b/c.txt", "x")

        later = clock.utcnow()
        assert later > created
        assert fs.tree.modified_at == later
        assert fs.read_dir("/")[0].modified_at == later
        assert fs.read_dir("/a")[0].modified_at == later

    def test_modification_time_never_moves_backwards(self) -> None:
        clock = FakeClock()
        fs = MemoryFilesystem(clock=clock)
        clock.advance(60)
        fs.write_file("/x.txt", "x")
        stamped = fs.tree.modified_at

        clock.set_wall(stamped.replace(year=stamped.year - 1))
        fs.write_file("/y.txt", "y")

        assert fs.tree.modified_at == stamped

    def test_copy_stamps_one_timestamp(self) -> None:
        clock = FakeClock()
        fs = MemoryFilesystem(clock=clock)
        populate(fs, {"/a/b/c.txt": "x", "/a/d.txt": "y"})

        clock.advance(5)
        fs.copy("/a", "/copy")

        stamp = clock.utcnow()
        assert {entry.modified_at for entry in fs.read_dir("/copy")} == {stamp}


class TestCopyIndependence:
    def test_copied_tree_is_independent(self) -> None:
        fs = MemoryFilesystem()
        populate(fs, {"/a/b/c.txt": "original"})

        fs.copy("/a", "/copy")
        fs.write_file("/a/b/c.txt", "changed")

        assert fs.read_file("/copy/b/c.txt") == "original"

    def test_moved_nodes_are_reparented(self) -> None:
        fs = MemoryFilesystem()
        populate(fs, {"/a/b/c.txt": "x"})
        fs.mkdir("/z")

        fs.move("/a", "/z")

        file = fs.tree.directories["z"].directories["b"].files["c.txt"]
        assert file.full_path() == "/z/b/c.txt"
        assert fs.read_dir("/z/b")[0].path == "/z/b/c.txt"


class TestDeleteRoot:
    def test_delete_root_resets_current_directory(self) -> None:
        fs = MemoryFilesystem(current_directory="/work")

        fs.delete("/")

        assert fs.get_current_directory() == "/"
        assert fs.tree.size == 0

    def test_delete_missing_reports_path(self) -> None:
        fs = MemoryFilesystem()

        with pytest.raises(PathNotFoundError) as exc_info:
            fs.delete("nowhere")

        assert exc_info.value.path == "nowhere"


class TestLogging:
    def test_mutations_log_debug_events(self, caplog: pytest.LogCaptureFixture) -> None:
        fs = MemoryFilesystem()

        with caplog.at_level(logging.DEBUG, logger="scriptfs.filesystem._memory"):
            fs.mkdir("/a")
            fs.write_file("/a/f.txt", "x")
            fs.copy("/a", "/b")
            fs.move("/b", "/c")
            fs.delete("/c")

        events = [getattr(record, "event", None) for record in caplog.records]
        assert events == [
            "filesystem.mkdir",
            "filesystem.write",
            "filesystem.copy",
            "filesystem.move",
            "filesystem.delete",
        ]
        assert caplog.records[1].context == {
            "component": "memory_filesystem",
            "path": "/a/f.txt",
            "chars": 1,
        }


_NAMES = st.sampled_from(["a", "b", "c"])
_PATHS = st.lists(_NAMES, min_size=1, max_size=3)
_WRITE = st.tuples(st.just("write"), _PATHS, st.text(max_size=8))
_DELETE = st.tuples(st.just("delete"), _PATHS, st.just(""))
_COPY = st.tuples(st.just("copy"), _PATHS, st.just(""))


class TestSizeInvariantProperty:
    @settings(max_examples=75, deadline=None)
    @given(st.lists(st.one_of(_WRITE, _DELETE, _COPY), max_size=20))
    def test_size_matches_file_contents(
        self, operations: list[tuple[str, list[str], str]]
    ) -> None:
        fs = MemoryFilesystem()
        for kind, segments, text in operations:
            directory = "/" + "/".join(segments[:-1])
            path = "/" + "/".join([*segments[:-1], f"{segments[-1]}.txt"])
            try:
                if kind == "write":
                    fs.mkdir(directory)
                    fs.write_file(path, text)
                elif kind == "delete":
                    fs.delete(directory)
                else:
                    fs.copy("/" + segments[0], "/copy/" + segments[0])
            except (PathNotFoundError, NotADirectoryError, IsADirectoryError):
                continue
            _assert_size_invariant(fs.tree)
