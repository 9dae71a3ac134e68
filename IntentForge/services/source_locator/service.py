"""
Source Locator Service.

Maps a manifest component to the Java/Kotlin file that implements it. The
project tree is indexed once per root (file stem -> candidate paths); lookups
are then two-phase: exact stem match, then bidirectional partial match. Anything
other than a single surviving candidate is a miss, never a guess.
"""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path

from ...core.config import get_config
from ...core.exceptions import SourceMiss, SourceNotFoundError
from ...core.logging import get_logger
from ...models.component import Component

logger = get_logger(__name__)


class SourceFileIndex:
    """Read-only index of source files under one project root."""

    def __init__(self, root: Path, files: dict[str, list[Path]]) -> None:
        self.root = root
        self._files = files

    @classmethod
    def build(cls, root: Path, extensions: Iterable[str] = (".java", ".kt")) -> SourceFileIndex:
        """Index every file with a source extension under `root` in one traversal."""
        root = Path(root)
        wanted = {ext.lower() for ext in extensions}
        files: dict[str, list[Path]] = {}
        for path in root.rglob("*"):
            if path.suffix.lower() in wanted and path.is_file():
                files.setdefault(path.stem, []).append(path)
        logger.debug(
            "Indexed source files",
            root=str(root),
            names=len(files),
            files=sum(len(paths) for paths in files.values()),
        )
        return cls(root, files)

    def __len__(self) -> int:
        return len(self._files)

    def __contains__(self, name: object) -> bool:
        return name in self._files

    def lookup(self, name: str) -> list[Path]:
        return list(self._files.get(name, []))

    def items(self) -> Iterable[tuple[str, list[Path]]]:
        return ((name, list(paths)) for name, paths in self._files.items())


def _package_path_match(component: Component, candidates: list[Path]) -> list[Path]:
    """Candidates whose directories spell the component's package."""
    package_parts = tuple(component.qualified_name.split(".")[:-1])
    if not package_parts:
        return []
    return [p for p in candidates if p.parent.parts[-len(package_parts):] == package_parts]


class SourceLocator:
    """Resolves components to source files, caching one index per project root."""

    def __init__(self, extensions: Iterable[str] | None = None) -> None:
        self.extensions = tuple(extensions or get_config().extraction.source_extensions)
        self._indexes: dict[Path, SourceFileIndex] = {}

    def index_for(self, root: Path) -> SourceFileIndex:
        key = Path(root).resolve()
        if key not in self._indexes:
            self._indexes[key] = SourceFileIndex.build(key, self.extensions)
        return self._indexes[key]

    def locate(self, component: Component, project_root: Path | None = None) -> Path:
        """Find the file implementing `component`.

        Args:
            component: Component to resolve.
            project_root: Tree to search; defaults to the manifest's directory.

        Returns:
            Path to the single matching source file.

        Raises:
            SourceNotFoundError: With reason NOT_FOUND or AMBIGUOUS.
        """
        root = Path(project_root or component.manifest_dir).resolve()
        index = self.index_for(root)
        class_name = component.source_class_name

        # 1. Exact name matching
        exact = index.lookup(class_name)
        if len(exact) == 1:
            logger.debug("Found source file", path=str(exact[0]), match="exact")
            return exact[0]
        if len(exact) > 1:
            by_package = _package_path_match(component, exact)
            if len(by_package) == 1:
                logger.debug("Found source file", path=str(by_package[0]), match="package_path")
                return by_package[0]

        # 2. Partial name matching, restricted to the project root
        partial: list[Path] = []
        for name, paths in index.items():
            if class_name in name or name in class_name:
                partial.extend(p for p in paths if p.is_relative_to(root))
        candidates = sorted(set(partial))

        if len(candidates) == 1:
            logger.debug("Found source file", path=str(candidates[0]), match="partial")
            return candidates[0]

        reason = SourceMiss.AMBIGUOUS if candidates else SourceMiss.NOT_FOUND
        raise SourceNotFoundError(
            message=f"Could not resolve source file for {component.qualified_name}",
            component_name=component.qualified_name,
            reason=reason,
            candidates=[str(p) for p in candidates],
            context={"root": str(root)},
        )
