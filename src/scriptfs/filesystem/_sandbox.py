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

"""Host filesystem backend confined to a sandbox root.

Paths are resolved exactly as the in-memory filesystem resolves them, then
mapped below the sandbox root. The mapped path is checked, after following
symlinks, to stay inside the root on whole path components.

Example usage::

    from scriptfs.filesystem import SandboxFilesystem

    fs = SandboxFilesystem("/srv/scripts", case_sensitive=True)
    fs.write_file("/notes.txt", "hello")
    assert fs.read_file("notes.txt") == "hello"
"""

from __future__ import annotations

import os
import shutil
import tempfile
from collections.abc import Collection, Iterator, Mapping, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path

from ..errors import (
    FilesystemError,
    InvalidDestinationError,
    NotADirectoryFsError,
    NotAFileError,
    PathNotFoundError,
    SandboxViolationError,
    UnsupportedEncodingError,
)
from ..logging import StructuredLogger, get_logger
from ._glob import compile_pattern, search
from ._path import (
    ROOT,
    SEPARATOR,
    fold_case,
    host_path_for,
    is_file_path,
    is_within,
    join_segments,
    parent_path,
    resolve_path,
)
from ._types import DEFAULT_ENCODING, DirEntry, check_encoding

__all__ = ["SandboxFilesystem"]

logger: StructuredLogger = get_logger(
    __name__, context={"component": "sandbox_filesystem"}
)


@dataclass(slots=True, frozen=True)
class _Resolved:
    """A canonical sandbox path and its (unresolved) host location."""

    canonical: str
    host: Path


@contextmanager
def _host_errors(operation: str, path: str) -> Iterator[None]:
    """Re-raise host ``OSError``s as filesystem errors naming the operation and path."""
    try:
        yield
    except FilesystemError:
        raise
    except FileNotFoundError as err:
        msg = f"unable to {operation} {path!r}: {err.strerror or err}"
        raise PathNotFoundError(msg, operation=operation, path=path) from err
    except (NotADirectoryError, FileExistsError) as err:
        msg = f"unable to {operation} {path!r}: {err.strerror or err}"
        raise NotADirectoryFsError(msg, operation=operation, path=path) from err
    except IsADirectoryError as err:
        msg = f"unable to {operation} {path!r}: {err.strerror or err}"
        raise NotAFileError(msg, operation=operation, path=path) from err
    except OSError as err:
        msg = f"unable to {operation} {path!r}: {err.strerror or err}"
        raise FilesystemError(msg, operation=operation, path=path) from err


@dataclass(slots=True, frozen=True)
class _HostNode:
    host: Path
    virtual: str


class _HostGlobSource:
    """Adapts host directories to the glob search protocol."""

    def __init__(self, root: Path, *, case_sensitive: bool) -> None:
        self._root = root
        self._case_sensitive = case_sensitive

    def _name(self, name: str) -> str:
        return fold_case(name, case_sensitive=self._case_sensitive)

    def _child_path(self, node: _HostNode, name: str) -> str:
        return f"{node.virtual}{name}" if node.virtual == ROOT else f"{node.virtual}/{name}"

    def directories(self, node: _HostNode) -> Mapping[str, _HostNode]:
        children: dict[str, _HostNode] = {}
        for item in node.host.iterdir():
            if item.is_dir() and is_within(item.resolve(), self._root):
                name = self._name(item.name)
                children[name] = _HostNode(item, self._child_path(node, name))
        return children

    def files(self, node: _HostNode) -> Collection[str]:
        return {
            self._name(item.name)
            for item in node.host.iterdir()
            if item.is_file() and is_within(item.resolve(), self._root)
        }

    def file_path(self, node: _HostNode, name: str) -> str:
        return self._child_path(node, name)


class SandboxFilesystem:
    """Filesystem backed by a host directory that no path may escape.

    Args:
        root: Existing host directory acting as the virtual ``/``.
        case_sensitive: Case policy of the host filesystem. Pass the value of
            :func:`scriptfs.config.probe_case_sensitivity` computed once by
            the code assembling the process.
        current_directory: Initial current directory, created if missing.
    """

    def __init__(
        self,
        root: str | os.PathLike[str],
        *,
        case_sensitive: bool,
        current_directory: str = ROOT,
    ) -> None:
        root_path = Path(root).expanduser().resolve()
        if not root_path.exists():
            msg = f"Sandbox root does not exist: {root_path}"
            raise PathNotFoundError(msg, operation="init", path=str(root))
        if not root_path.is_dir():
            msg = f"Sandbox root is not a directory: {root_path}"
            raise NotADirectoryFsError(msg, operation="init", path=str(root))
        self._root = root_path
        self._case_sensitive = case_sensitive
        self._current = ROOT
        self.mkdir(current_directory)
        self._current = self._resolve(current_directory, operation="init").canonical

    @property
    def root(self) -> Path:
        """Host directory acting as the sandbox root."""
        return self._root

    def is_case_sensitive(self) -> bool:
        return self._case_sensitive

    # --- Helpers ---

    def _resolve(self, path: str, *, operation: str) -> _Resolved:
        """Resolve ``path`` to its canonical form and host location.

        Raises:
            SandboxViolationError: The path climbs above the virtual root, or
                its host location, symlinks followed, lies outside the root.
        """
        try:
            canonical = resolve_path(
                path,
                current=self._current,
                case_sensitive=self._case_sensitive,
                confined=True,
                operation=operation,
            )
            host = host_path_for(self._root, canonical)
            if not is_within(host.resolve(), self._root):
                msg = f"Path escapes the sandbox root: {path}"
                raise SandboxViolationError(msg, operation=operation, path=path)
        except SandboxViolationError:
            _log_violation(operation, path)
            raise
        return _Resolved(canonical=canonical, host=host)

    def _virtual(self, host: Path) -> str:
        return join_segments(host.relative_to(self._root).parts)

    def _follow_current(self, src: str, dest: str | None) -> None:
        """Repoint the current directory after ``src`` moved to ``dest`` (None: deleted)."""
        if src == ROOT:
            if dest is None:
                self._current = ROOT
            return
        if self._current != src and not self._current.startswith(src + SEPARATOR):
            return
        if dest is None:
            self._current = parent_path(src)
        else:
            suffix = self._current[len(src) :]
            self._current = (dest if dest != ROOT else "") + suffix or ROOT

    # --- Read Operations ---

    def read_dir(self, path: str) -> list[DirEntry]:
        resolved = self._resolve(path, operation="read_dir")
        host = resolved.host
        if not host.exists():
            msg = f"No such directory: {resolved.canonical}"
            raise PathNotFoundError(msg, operation="read_dir", path=path)
        if not host.is_dir():
            msg = f"Not a directory: {resolved.canonical}"
            raise NotADirectoryFsError(msg, operation="read_dir", path=path)

        entries: list[DirEntry] = []
        with _host_errors("read_dir", path):
            for item in host.iterdir():
                is_link = item.is_symlink()
                # Links leading out of the root are listed by their own metadata.
                followed = item.exists() and (
                    not is_link or is_within(item.resolve(), self._root)
                )
                st = item.stat() if followed else item.lstat()
                is_dir = followed and item.is_dir()
                entries.append(
                    DirEntry(
                        name=item.name,
                        path=self._virtual(host / item.name),
                        is_file=followed and item.is_file(),
                        is_directory=is_dir,
                        is_symlink=is_link,
                        size_bytes=0 if is_dir else st.st_size,
                        modified_at=datetime.fromtimestamp(st.st_mtime, tz=UTC),
                    )
                )
        entries.sort(key=lambda entry: entry.name)
        return entries

    def read_file(self, path: str, encoding: str = DEFAULT_ENCODING) -> str:
        check_encoding(encoding, path=path)
        if not is_file_path(path):
            msg = f"Not a file: {path}"
            raise NotAFileError(msg, operation="read_file", path=path)
        resolved = self._resolve(path, operation="read_file")
        if resolved.host.is_dir():
            msg = f"Is a directory: {resolved.canonical}"
            raise NotAFileError(msg, operation="read_file", path=path)
        with _host_errors("read_file", path):
            try:
                with resolved.host.open(encoding="utf-8", newline="") as f:
                    return f.read()
            except UnicodeDecodeError as err:
                msg = f"Cannot read {path!r} as text: content is not valid utf-8"
                raise UnsupportedEncodingError(
                    msg, operation="read_file", path=path
                ) from err

    def file_exists(self, path: str) -> bool:
        if not is_file_path(path):
            return False
        return self._resolve(path, operation="file_exists").host.is_file()

    def directory_exists(self, path: str) -> bool:
        return self._resolve(path, operation="directory_exists").host.is_dir()

    def realpath(self, path: str) -> str:
        resolved = self._resolve(path, operation="realpath")
        return fold_case(
            self._virtual(resolved.host.resolve()), case_sensitive=self._case_sensitive
        )

    def get_current_directory(self) -> str:
        return self._current

    def glob(self, patterns: Sequence[str]) -> list[str]:
        compiled = [
            compile_pattern(pattern, case_sensitive=self._case_sensitive)
            for pattern in patterns
        ]
        source = _HostGlobSource(self._root, case_sensitive=self._case_sensitive)
        paths: list[str] = []
        with _host_errors("glob", ", ".join(patterns)):
            for pattern in compiled:
                if pattern.absolute:
                    anchor = _HostNode(self._root, ROOT)
                else:
                    current = self._resolve(self._current, operation="glob")
                    anchor = _HostNode(current.host, current.canonical)
                if anchor.host.is_dir():
                    paths.extend(search(source, anchor, pattern.segments))
        return paths

    # --- Write Operations ---

    def write_file(self, path: str, text: str) -> None:
        if not is_file_path(path):
            msg = f"Not a file: {path}"
            raise NotAFileError(msg, operation="write_file", path=path)
        resolved = self._resolve(path, operation="write_file")
        host = resolved.host
        if resolved.canonical == ROOT or host.is_dir():
            msg = f"Is a directory: {resolved.canonical}"
            raise NotAFileError(msg, operation="write_file", path=path)
        if not host.parent.is_dir():
            msg = f"No such directory: {parent_path(resolved.canonical)}"
            raise PathNotFoundError(msg, operation="write_file", path=path)
        with _host_errors("write_file", path), host.open(
            "w", encoding="utf-8", newline=""
        ) as f:
            _ = f.write(text)
        logger.debug(
            "Wrote file.",
            event="filesystem.write",
            context={"path": resolved.canonical, "chars": len(text)},
        )

    def mkdir(self, path: str) -> None:
        resolved = self._resolve(path, operation="mkdir")
        if resolved.host.exists() and not resolved.host.is_dir():
            msg = f"Not a directory: {resolved.canonical}"
            raise NotADirectoryFsError(msg, operation="mkdir", path=path)
        with _host_errors("mkdir", path):
            resolved.host.mkdir(parents=True, exist_ok=True)
        logger.debug(
            "Created directory.",
            event="filesystem.mkdir",
            context={"path": resolved.canonical},
        )

    def delete(self, path: str) -> None:
        resolved = self._resolve(path, operation="delete")
        host = resolved.host
        if not os.path.lexists(host):
            msg = f"No such file or directory: {resolved.canonical}"
            raise PathNotFoundError(msg, operation="delete", path=path)
        with _host_errors("delete", path):
            if resolved.canonical == ROOT:
                for item in host.iterdir():
                    _remove(item)
            else:
                _remove(host)
        self._follow_current(resolved.canonical, None)
        logger.debug(
            "Deleted path.",
            event="filesystem.delete",
            context={"path": resolved.canonical},
        )

    def copy(self, src: str, dest: str) -> None:
        self._transfer(src, dest, remove_source=False, operation="copy")

    def move(self, src: str, dest: str) -> None:
        self._transfer(src, dest, remove_source=True, operation="move")

    def change_directory(self, path: str) -> None:
        resolved = self._resolve(path, operation="change_directory")
        if not resolved.host.exists():
            msg = f"No such directory: {resolved.canonical}"
            raise PathNotFoundError(msg, operation="change_directory", path=path)
        if not resolved.host.is_dir():
            msg = f"Not a directory: {resolved.canonical}"
            raise NotADirectoryFsError(msg, operation="change_directory", path=path)
        self._current = resolved.canonical

    # --- Copy and move ---

    def _transfer(
        self, src: str, dest: str, *, remove_source: bool, operation: str
    ) -> None:
        source = self._resolve(src, operation=operation)
        target = self._resolve(dest, operation=operation)
        if not source.host.exists():
            msg = f"No such file or directory: {source.canonical}"
            raise PathNotFoundError(msg, operation=operation, path=src)

        with _host_errors(operation, src):
            if source.host.is_dir():
                self._transfer_directory(
                    source, target, dest, remove_source=remove_source, operation=operation
                )
            else:
                if not is_file_path(src):
                    msg = f"No such directory: {source.canonical}"
                    raise PathNotFoundError(msg, operation=operation, path=src)
                self._transfer_file(
                    source, target, dest, remove_source=remove_source, operation=operation
                )
        logger.debug(
            "Transferred path.",
            event=f"filesystem.{operation}",
            context={"src": source.canonical, "dest": target.canonical},
        )

    def _transfer_file(
        self,
        source: _Resolved,
        target: _Resolved,
        dest: str,
        *,
        remove_source: bool,
        operation: str,
    ) -> None:
        host = target.host
        if host.is_file():
            if dest.endswith(SEPARATOR):
                msg = f"Not a directory: {target.canonical}"
                raise NotADirectoryFsError(msg, operation=operation, path=dest)
            destination = host
        elif host.is_dir():
            destination = host / source.host.name
            self._check_contained(destination, operation=operation, path=dest)
            if destination.is_dir():
                msg = f"Is a directory: {self._virtual(destination)}"
                raise NotAFileError(msg, operation=operation, path=dest)
        elif dest.endswith(SEPARATOR):
            self.mkdir(target.canonical)
            destination = host / source.host.name
        else:
            self.mkdir(parent_path(target.canonical))
            destination = host

        if destination.exists() and destination.samefile(source.host):
            return
        _ = shutil.copyfile(source.host, destination)
        if remove_source:
            source.host.unlink()

    def _transfer_directory(
        self,
        source: _Resolved,
        target: _Resolved,
        dest: str,
        *,
        remove_source: bool,
        operation: str,
    ) -> None:
        host = target.host
        if host.exists() and not host.is_dir():
            msg = f"Not a directory: {target.canonical}"
            raise NotADirectoryFsError(msg, operation=operation, path=dest)

        inside = source.canonical == ROOT or target.canonical.startswith(
            source.canonical + SEPARATOR
        )
        outer = source.canonical.startswith(
            target.canonical.rstrip(SEPARATOR) + SEPARATOR
        )
        if remove_source:
            if target.canonical == source.canonical:
                return
            if inside:
                msg = f"Cannot move {source.canonical} into itself: {target.canonical}"
                raise InvalidDestinationError(msg, operation=operation, path=dest)

        if host.is_dir():
            self._check_merge(
                source.host,
                host,
                exclude=source.host if remove_source else None,
                operation=operation,
                path=dest,
            )

        if remove_source:
            if not host.is_dir():
                self.mkdir(parent_path(target.canonical))
                _ = shutil.move(source.host, host)
            elif outer:
                _move_into_ancestor(source.host, host)
            else:
                _merge_tree(source.host, host)
                _remove(source.host)
            self._follow_current(source.canonical, target.canonical)
            return

        if inside or outer or target.canonical == source.canonical:
            with tempfile.TemporaryDirectory(prefix="scriptfs-copy-") as staging:
                snapshot = Path(staging) / "tree"
                _ = shutil.copytree(source.host, snapshot, symlinks=True)
                _merge_tree(snapshot, host)
        else:
            _merge_tree(source.host, host)

    def _check_contained(self, host: Path, *, operation: str, path: str) -> None:
        """Raise if ``host`` is a symlink whose target lies outside the root."""
        if host.is_symlink() and not is_within(host.resolve(), self._root):
            _log_violation(operation, path)
            msg = f"Symlink escapes the sandbox root: {self._virtual(host)}"
            raise SandboxViolationError(msg, operation=operation, path=path)

    def _check_merge(
        self,
        source: Path,
        destination: Path,
        *,
        exclude: Path | None,
        operation: str,
        path: str,
    ) -> None:
        """Raise before any change if merging ``source`` into ``destination`` cannot complete.

        The merge never descends through a destination symlink and rejects
        any destination symlink that leads out of the root.
        """
        for item in source.iterdir():
            counterpart = destination / item.name
            if not os.path.lexists(counterpart):
                continue
            if exclude is not None and counterpart.exists() and counterpart.samefile(exclude):
                continue
            self._check_contained(counterpart, operation=operation, path=path)
            if _is_real_dir(item):
                if not _is_real_dir(counterpart):
                    msg = f"Cannot merge a directory onto a file: {self._virtual(counterpart)}"
                    raise NotADirectoryFsError(msg, operation=operation, path=path)
                self._check_merge(
                    item, counterpart, exclude=exclude, operation=operation, path=path
                )
            elif _is_real_dir(counterpart):
                msg = f"Cannot merge a file onto a directory: {self._virtual(counterpart)}"
                raise NotAFileError(msg, operation=operation, path=path)


def _is_real_dir(host: Path) -> bool:
    return host.is_dir() and not host.is_symlink()


def _merge_tree(source: Path, destination: Path) -> None:
    """Copy ``source`` into ``destination`` entry by entry.

    Directories merge recursively. Files and symlinks replace the entry of
    the same name, which is unlinked first so the copy never writes through
    a destination symlink. Symlinks are recreated as links.
    """
    destination.mkdir(parents=True, exist_ok=True)
    for item in source.iterdir():
        counterpart = destination / item.name
        if _is_real_dir(item):
            _merge_tree(item, counterpart)
            continue
        if os.path.lexists(counterpart):
            counterpart.unlink()
        if item.is_symlink():
            counterpart.symlink_to(os.readlink(item))
        else:
            _ = shutil.copy2(item, counterpart)


def _move_into_ancestor(source: Path, destination: Path) -> None:
    """Merge ``source`` into a directory that contains it.

    The source is snapshotted and removed before the merge, since its own
    path may be overwritten by its contents. It is restored from the
    snapshot if the merge fails.
    """
    with tempfile.TemporaryDirectory(prefix="scriptfs-move-") as staging:
        snapshot = Path(staging) / "tree"
        _ = shutil.copytree(source, snapshot, symlinks=True)
        _remove(source)
        try:
            _merge_tree(snapshot, destination)
        except OSError:
            if os.path.lexists(source):
                _remove(source)
            _ = shutil.copytree(snapshot, source, symlinks=True)
            raise


def _log_violation(operation: str, path: str) -> None:
    logger.warning(
        "Rejected path outside the sandbox.",
        event="filesystem.sandbox_violation",
        context={"operation": operation, "path": path},
    )


def _remove(host: Path) -> None:
    if host.is_dir() and not host.is_symlink():
        shutil.rmtree(host)
    else:
        host.unlink()
