"""Layered ignore matching for directory traversal.

Three kinds of layers contribute exclusion patterns:

* global patterns from the scan configuration, compiled once per scan and
  matched relative to the scan root,
* user ignore files (primary app location, then the legacy location), loaded
  once per scan and matched relative to the scan root,
* per-directory ``.gitignore`` / ``.ignore`` files, read the first time their
  directory is entered and matched relative to that directory.

Each layer is evaluated on its own with gitignore semantics, so a ``!``
negation only re-includes paths excluded earlier in the *same* file. A path is
pruned as soon as any active layer excludes it; no layer can re-include what
another excluded.

Per-directory layers live on an ``IgnoreScope``: an immutable stack that a
traversal extends with ``IgnoreMatcher.enter`` when it descends into a
directory. Sibling subtrees processed by different worker threads each hold
their own scope, and leaving a subtree simply drops the reference, so matching
cost grows with depth rather than with the number of files seen.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Sequence, Tuple

import pathspec

logger = logging.getLogger(__name__)

PER_DIRECTORY_IGNORE_FILES: Tuple[str, ...] = (".gitignore", ".ignore")


def compile_patterns(lines: Iterable[str]) -> Optional[pathspec.PathSpec]:
    """Compile ignore-file lines; returns None when nothing but blanks/comments."""
    cleaned = [line.rstrip("\r\n") for line in lines]
    if not any(line.strip() and not line.lstrip().startswith("#") for line in cleaned):
        return None
    return pathspec.GitIgnoreSpec.from_lines(cleaned)


def read_ignore_file(path: Path) -> Optional[pathspec.PathSpec]:
    try:
        text = path.read_text(encoding="utf-8", errors="replace")
    except OSError as exc:
        logger.debug("Unable to read ignore file %s: %s", path, exc)
        return None
    return compile_patterns(text.splitlines())


@dataclass(frozen=True)
class IgnoreLayer:
    """Compiled patterns anchored at ``base``."""

    base: Path
    spec: pathspec.PathSpec
    source: str

    def matches(self, path: Path, is_dir: bool) -> bool:
        try:
            relative = path.relative_to(self.base).as_posix()
        except ValueError:
            return False
        if relative in ("", "."):
            return False
        if is_dir:
            relative += "/"
        return self.spec.match_file(relative)


@dataclass(frozen=True)
class IgnoreScope:
    """Active layers for one position in the traversal.

    ``parent`` links form the depth-scoped stack of per-directory layers.
    """

    root: Path
    base_layers: Tuple[IgnoreLayer, ...] = ()
    layer: Optional[IgnoreLayer] = None
    parent: Optional["IgnoreScope"] = None

    def push(self, layer: IgnoreLayer) -> "IgnoreScope":
        return IgnoreScope(root=self.root, base_layers=self.base_layers, layer=layer, parent=self)

    @property
    def depth(self) -> int:
        depth = 0
        scope: Optional[IgnoreScope] = self
        while scope is not None:
            if scope.layer is not None:
                depth += 1
            scope = scope.parent
        return depth

    def directory_layers(self) -> List[IgnoreLayer]:
        """Per-directory layers from the outermost directory inwards."""
        stack: List[IgnoreLayer] = []
        scope: Optional[IgnoreScope] = self
        while scope is not None:
            if scope.layer is not None:
                stack.append(scope.layer)
            scope = scope.parent
        stack.reverse()
        return stack

    def layers(self) -> Iterator[IgnoreLayer]:
        yield from self.base_layers
        yield from self.directory_layers()


class IgnoreMatcher:
    """Combines global, user and per-directory ignore layers for one scan."""

    def __init__(
        self,
        global_patterns: Sequence[str] = (),
        user_ignore_files: Sequence[Path] = (),
        skip_hidden: bool = True,
        directory_ignore_files: Sequence[str] = PER_DIRECTORY_IGNORE_FILES,
    ) -> None:
        self.skip_hidden = skip_hidden
        self.directory_ignore_files = tuple(directory_ignore_files)
        self._global_spec = compile_patterns(global_patterns)
        self._user_specs: List[Tuple[str, pathspec.PathSpec]] = []
        for ignore_file in user_ignore_files:
            spec = read_ignore_file(Path(ignore_file))
            if spec is not None:
                self._user_specs.append((str(ignore_file), spec))
                logger.debug("Loaded user ignore file %s", ignore_file)

    def root_scope(self, root: Path, entry_names: Optional[Iterable[str]] = None) -> IgnoreScope:
        """Scope for the top of a scan root, with the root's own ignore files applied."""
        base_layers: List[IgnoreLayer] = []
        if self._global_spec is not None:
            base_layers.append(IgnoreLayer(root, self._global_spec, "global_ignores"))
        for source, spec in self._user_specs:
            base_layers.append(IgnoreLayer(root, spec, source))
        scope = IgnoreScope(root=root, base_layers=tuple(base_layers))
        return self.enter(root, scope, entry_names)

    def enter(
        self,
        directory: Path,
        scope: IgnoreScope,
        entry_names: Optional[Iterable[str]] = None,
    ) -> IgnoreScope:
        """Return the scope for ``directory``, pushing its ignore files if any.

        ``entry_names`` (the directory listing) avoids a stat per candidate file.
        """
        names = set(entry_names) if entry_names is not None else None
        for file_name in self.directory_ignore_files:
            if names is not None and file_name not in names:
                continue
            candidate = directory / file_name
            if names is None and not candidate.is_file():
                continue
            spec = read_ignore_file(candidate)
            if spec is not None:
                scope = scope.push(IgnoreLayer(directory, spec, str(candidate)))
        return scope

    def should_prune(self, path: Path, is_dir: bool, scope: IgnoreScope) -> bool:
        """True when ``path`` is excluded by any active layer.

        For a directory this means the traversal must not descend into it.
        """
        if self.skip_hidden and path != scope.root and path.name.startswith("."):
            return True
        for layer in scope.layers():
            if layer.matches(path, is_dir):
                return True
        return False
