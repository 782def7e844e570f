"""File discovery utilities."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, Iterator

from sortwise.state import DEFAULT_STATE_DIRNAME


def _is_hidden(path: Path) -> bool:
    return any(part.startswith(".") for part in path.parts if part not in (".", ".."))


class DirectoryScanner:
    """Enumerate files under a root subject to configuration filters."""

    def __init__(
        self,
        *,
        recursive: bool,
        include_hidden: bool,
        follow_symlinks: bool,
        exclude: Iterable[Path] = (),
    ) -> None:
        """Configure the scanner.

        Args:
            recursive: Whether to descend into subdirectories.
            include_hidden: Whether dot-files and dot-directories are yielded.
            follow_symlinks: Whether symbolic links to files are yielded.
            exclude: Directories whose contents are never yielded, such as the
                organization root when it sits inside the scanned tree.
        """
        self.recursive = recursive
        self.include_hidden = include_hidden
        self.follow_symlinks = follow_symlinks
        self.exclude = tuple(path.expanduser().resolve() for path in exclude)

    def scan(self, root: Path) -> Iterator[Path]:
        """Yield absolute file paths under ``root`` in sorted order."""
        root = root.expanduser().resolve()
        if not root.exists():
            return

        for path in sorted(self._iter_paths(root)):
            if path.is_symlink() and not self.follow_symlinks:
                continue
            if not path.is_file():
                continue
            try:
                relative = path.relative_to(root)
            except ValueError:
                relative = Path(path.name)
            if DEFAULT_STATE_DIRNAME in relative.parts:
                continue
            if not self.include_hidden and _is_hidden(relative):
                continue
            if any(excluded in path.parents for excluded in self.exclude):
                continue
            yield path

    def _iter_paths(self, root: Path) -> Iterable[Path]:
        if root.is_file():
            yield root
            return

        if self.recursive:
            yield from root.rglob("*")
        else:
            yield from root.iterdir()


__all__ = ["DirectoryScanner"]
