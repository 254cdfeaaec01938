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

"""Tests for shared path resolution utilities."""

from __future__ import annotations

from pathlib import Path

import pytest
from hypothesis import given, strategies as st

from scriptfs.errors import SandboxViolationError
from scriptfs.filesystem._path import (
    ROOT,
    SEPARATOR,
    base_name,
    fold_case,
    host_path_for,
    is_file_path,
    is_within,
    join_segments,
    parent_path,
    resolve_path,
    split_segments,
    strip_trailing_separators,
)


class TestConstants:
    def test_root_and_separator(self) -> None:
        assert ROOT == "/"
        assert SEPARATOR == "/"


class TestStripTrailingSeparators:
    def test_strips_single(self) -> None:
        assert strip_trailing_separators("/a/b/") == "/a/b"

    def test_strips_repeated(self) -> None:
        assert strip_trailing_separators("a///") == "a"

    def test_root_stays_root(self) -> None:
        assert strip_trailing_separators("/") == "/"
        assert strip_trailing_separators("///") == "/"

    def test_empty_stays_empty(self) -> None:
        assert strip_trailing_separators("") == ""


class TestIsFilePath:
    @pytest.mark.parametrize("path", ["a.txt", "/a/b", "./x"])
    def test_file_shaped(self, path: str) -> None:
        assert is_file_path(path) is True

    @pytest.mark.parametrize("path", ["", "/", "a/", "/a/b/"])
    def test_directory_shaped(self, path: str) -> None:
        assert is_file_path(path) is False


class TestSegments:
    def test_split_drops_empty_segments(self) -> None:
        assert split_segments("//a//b/") == ["a", "b"]
        assert split_segments("/") == []

    def test_join_is_absolute(self) -> None:
        assert join_segments([]) == "/"
        assert join_segments(["a", "b"]) == "/a/b"

    def test_parent_and_base_name(self) -> None:
        assert parent_path("/a/b/c") == "/a/b"
        assert parent_path("/a") == "/"
        assert parent_path("/") == "/"
        assert base_name("/a/b/c") == "c"
        assert base_name("/") == ""

    def test_fold_case(self) -> None:
        assert fold_case("/A/b", case_sensitive=True) == "/A/b"
        assert fold_case("/A/b", case_sensitive=False) == "/a/b"


class TestResolvePath:
    def test_absolute_path_ignores_current(self) -> None:
        assert resolve_path("/x/y", current="/a/b", case_sensitive=True) == "/x/y"

    def test_relative_path_joins_current(self) -> None:
        assert resolve_path("c/d", current="/a/b", case_sensitive=True) == "/a/b/c/d"

    def test_root_with_non_root_current(self) -> None:
        assert resolve_path("/", current="/a/b", case_sensitive=True) == "/"

    def test_empty_path_is_current_directory(self) -> None:
        assert resolve_path("", current="/a", case_sensitive=True) == "/a"

    def test_trailing_separators_are_stripped(self) -> None:
        assert resolve_path("/a/b///", current="/", case_sensitive=True) == "/a/b"

    def test_dot_and_empty_segments_collapse(self) -> None:
        assert resolve_path("./a//./b", current="/", case_sensitive=True) == "/a/b"

    def test_parent_segments_resolve(self) -> None:
        assert resolve_path("../c", current="/a/b", case_sensitive=True) == "/a/c"

    def test_parent_segments_clamp_at_root(self) -> None:
        assert resolve_path("../../../x", current="/a", case_sensitive=True) == "/x"

    def test_confined_parent_above_root_raises(self) -> None:
        with pytest.raises(SandboxViolationError) as exc_info:
            resolve_path(
                "../x",
                current="/",
                case_sensitive=True,
                confined=True,
                operation="read_file",
            )

        assert exc_info.value.operation == "read_file"
        assert exc_info.value.path == "../x"

    def test_confined_parent_inside_root_is_allowed(self) -> None:
        resolved = resolve_path(
            "../x", current="/a", case_sensitive=True, confined=True
        )

        assert resolved == "/x"

    def test_case_insensitive_lowercases(self) -> None:
        assert resolve_path("Sub/File.TXT", current="/Dir", case_sensitive=False) == (
            "/dir/sub/file.txt"
        )

    @given(
        path=st.text(alphabet="ab./", max_size=20),
        current=st.lists(st.sampled_from(["a", "B", "c"]), max_size=3).map(
            join_segments
        ),
        case_sensitive=st.booleans(),
    )
    def test_resolution_is_idempotent(
        self, path: str, current: str, case_sensitive: bool
    ) -> None:
        current = fold_case(current, case_sensitive=case_sensitive)
        once = resolve_path(path, current=current, case_sensitive=case_sensitive)
        twice = resolve_path(once, current=current, case_sensitive=case_sensitive)

        assert once == twice
        assert once.startswith(ROOT)
        assert once == ROOT or not once.endswith(SEPARATOR)


class TestHostPaths:
    def test_host_path_for_maps_below_root(self, tmp_path: Path) -> None:
        assert host_path_for(tmp_path, "/a/b") == tmp_path / "a" / "b"
        assert host_path_for(tmp_path, "/") == tmp_path

    def test_is_within_compares_whole_segments(self) -> None:
        root = Path("/data")

        assert is_within(Path("/data"), root)
        assert is_within(Path("/data/sub/file"), root)
        assert not is_within(Path("/data2/evil"), root)
        assert not is_within(Path("/"), root)
