"""Read/write access to an Obsidian-style vault and its link graph."""

import logging
from pathlib import Path, PurePosixPath
from typing import Any

from ..models import HeadingInfo
from .parser import ParsedNote, parse_note

logger = logging.getLogger(__name__)


class Vault:
    """A directory of markdown notes addressed by vault-relative POSIX paths."""

    def __init__(self, vault_path: str | Path):
        self.vault_path = Path(vault_path)
        self._cache: dict[str, tuple[int, ParsedNote]] = {}

    def _abs(self, path: str) -> Path:
        return self.vault_path / PurePosixPath(path)

    def relative(self, file_path: str | Path) -> str:
        """Vault-relative POSIX path for an absolute or relative file path."""
        p = Path(file_path)
        if p.is_absolute():
            p = p.resolve().relative_to(self.vault_path.resolve())
        return p.as_posix()

    def markdown_files(self) -> list[str]:
        """All notes in the vault, skipping hidden files."""
        if not self.vault_path.exists():
            return []
        files = []
        for md_file in self.vault_path.rglob("*.md"):
            rel = md_file.relative_to(self.vault_path)
            if any(part.startswith(".") for part in rel.parts):
                continue
            files.append(rel.as_posix())
        return sorted(files)

    def exists(self, path: str) -> bool:
        return self._abs(path).is_file()

    def read(self, path: str) -> str:
        return self._abs(path).read_text(encoding="utf-8", errors="replace")

    def write(self, path: str, content: str) -> None:
        """Replace a note's full content."""
        target = self._abs(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")
        self._cache.pop(path, None)

    def parse(self, path: str) -> ParsedNote:
        """Parse a note, reusing the previous parse while the file is unchanged."""
        mtime = self._abs(path).stat().st_mtime_ns
        cached = self._cache.get(path)
        if cached and cached[0] == mtime:
            return cached[1]
        note = parse_note(self.read(path))
        self._cache[path] = (mtime, note)
        return note

    def get_headings(self, path: str) -> list[HeadingInfo]:
        return self.parse(path).headings

    def get_frontmatter(self, path: str) -> dict[str, Any]:
        return self.parse(path).frontmatter

    def get_links(self, path: str) -> list[str]:
        return self.parse(path).links

    @staticmethod
    def basename(path: str) -> str:
        return PurePosixPath(path).stem

    def resolve_link(self, link: str, source_path: str = "") -> str | None:
        """Resolve a wikilink target (without ``#section``) to a note path."""
        link = link.split("#", 1)[0].strip()
        if not link:
            return None

        source_dir = PurePosixPath(source_path).parent if source_path else PurePosixPath("")
        candidates = [str(source_dir / link), link]
        for candidate in candidates:
            for option in (candidate, f"{candidate}.md"):
                if option.endswith(".md") and self.exists(option):
                    return option

        name = PurePosixPath(link).name
        matches = [
            f for f in self.markdown_files()
            if PurePosixPath(f).stem == name or f.endswith(f"/{link}.md") or f.endswith(f"/{link}")
        ]
        if not matches:
            return None
        same_folder = [f for f in matches if PurePosixPath(f).parent == source_dir]
        return (same_folder or sorted(matches, key=len))[0]

    def resolved_links(self) -> dict[str, dict[str, int]]:
        """Map of source note -> {target note: link count} for every resolvable link."""
        index: dict[str, dict[str, int]] = {}
        for source in self.markdown_files():
            targets: dict[str, int] = {}
            for link in self.get_links(source):
                target = self.resolve_link(link, source)
                if target:
                    targets[target] = targets.get(target, 0) + 1
            index[source] = targets
        return index

    def backlinks(self, path: str) -> list[str]:
        """Notes that link to ``path``, in vault order."""
        return [
            source for source, targets in self.resolved_links().items()
            if source != path and path in targets
        ]

    def find_file(self, name_or_path: str) -> str | None:
        """Find a note by exact path, path + ``.md``, then basename or path suffix."""
        name_or_path = name_or_path.strip()
        if not name_or_path:
            return None
        if name_or_path.endswith(".md") and self.exists(name_or_path):
            return name_or_path
        if self.exists(f"{name_or_path}.md"):
            return f"{name_or_path}.md"

        for f in self.markdown_files():
            p = PurePosixPath(f)
            if (
                p.stem == name_or_path
                or p.name == name_or_path
                or f.endswith(f"/{name_or_path}")
                or f.endswith(f"/{name_or_path}.md")
            ):
                return f
        return None
