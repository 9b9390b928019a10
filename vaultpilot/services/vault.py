"""Vault document store backed by a local directory of Markdown notes."""

import re
import shutil
from datetime import UTC, datetime
from pathlib import Path
from typing import Protocol

from vaultpilot.exceptions import VaultError
from vaultpilot.utils.logging import get_logger

logger = get_logger(__name__)

TRASH_FOLDER = ".trash"
SEARCH_CONTEXT_CHARS = 50
ROOT_ALIASES = {"", "/", "."}


class Vault(Protocol):
    """Interface for vault document stores used by the vault tools."""

    def list_files(self, path: str = "", recursive: bool = False) -> str: ...

    def read_file(self, path: str) -> str: ...

    def write_file(self, path: str, content: str) -> str: ...

    def edit_file(self, path: str, old_text: str, new_text: str) -> str: ...

    def search(self, query: str, path: str = "", max_results: int = 20) -> str: ...

    def delete_file(self, path: str) -> str: ...

    def rename_file(self, old_path: str, new_path: str) -> str: ...

    def create_folder(self, path: str) -> str: ...

    def get_active_file(self) -> str: ...

    def append_to_file(self, path: str, content: str) -> str: ...

    def insert_at_line(self, path: str, line: int, content: str) -> str: ...


def normalize_path(path: str) -> str:
    """Normalize a vault path: forward slashes, no duplicate, leading or trailing slashes."""
    path = path.replace("\\", "/")
    path = re.sub(r"/+", "/", path)
    return path.strip("/").strip()


def _format_size(size: int) -> str:
    return f"{size / 1024:.1f} KB"


class FileSystemVault:
    """Vault rooted at a directory on disk.

    Paths given to every operation are relative to the vault root. Hidden
    entries (names starting with a dot, including the trash folder) are
    never listed or searched.
    """

    def __init__(self, root: str | Path):
        self.root = Path(root).resolve()
        if not self.root.is_dir():
            raise VaultError(f"Vault root is not a directory: {root}")
        self.active_path: str | None = None

    def _resolve(self, path: str) -> Path:
        normalized = normalize_path(path)
        if normalized in ROOT_ALIASES:
            return self.root
        target = (self.root / normalized).resolve()
        if target != self.root and self.root not in target.parents:
            raise VaultError(f"Path escapes the vault: {path}")
        return target

    def _relative(self, target: Path) -> str:
        return target.relative_to(self.root).as_posix()

    def _require_file(self, path: str) -> Path:
        target = self._resolve(path)
        if not target.is_file():
            raise VaultError(f"File not found: {path}")
        return target

    @staticmethod
    def _is_hidden(target: Path) -> bool:
        return target.name.startswith(".")

    def set_active_file(self, path: str | None) -> None:
        """Mark the file the user currently has open."""
        if path is None:
            self.active_path = None
            return
        self._require_file(path)
        self.active_path = normalize_path(path)

    def list_files(self, path: str = "", recursive: bool = False) -> str:
        folder = self._resolve(path)
        if not folder.is_dir():
            raise VaultError(f"Folder not found: {path}")

        entries: list[str] = []

        def collect(current: Path) -> None:
            for child in current.iterdir():
                if self._is_hidden(child):
                    continue
                if child.is_dir():
                    entries.append(f"{self._relative(child)}/")
                    if recursive:
                        collect(child)
                elif child.is_file():
                    entries.append(f"{self._relative(child)} ({_format_size(child.stat().st_size)})")

        collect(folder)
        entries.sort()

        if not entries:
            return "No files found."
        return "\n".join(entries)

    def read_file(self, path: str) -> str:
        return self._require_file(path).read_text(encoding="utf-8")

    def write_file(self, path: str, content: str) -> str:
        target = self._resolve(path)
        if target == self.root or target.is_dir():
            raise VaultError(f"Cannot write to a folder: {path}")

        existed = target.is_file()
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")

        normalized = self._relative(target)
        logger.info(f"{'Updated' if existed else 'Created'} vault file {normalized}")
        return f"File {'updated' if existed else 'created'}: {normalized}"

    def edit_file(self, path: str, old_text: str, new_text: str) -> str:
        if not old_text:
            raise VaultError("oldText must not be empty")

        target = self._require_file(path)
        content = target.read_text(encoding="utf-8")
        occurrences = content.count(old_text)
        if occurrences == 0:
            raise VaultError(f"Could not find the specified text in {path}. The oldText must match exactly.")

        target.write_text(content.replace(old_text, new_text, 1), encoding="utf-8")
        return f"File edited: {path} ({occurrences} occurrence(s) found, first one replaced)"

    def search(self, query: str, path: str = "", max_results: int = 20) -> str:
        if not query:
            raise VaultError("query must not be empty")

        scope = self._resolve(path)
        if not scope.is_dir():
            raise VaultError(f"Folder not found: {path}")

        needle = query.lower()
        results: list[str] = []
        for file in sorted(scope.rglob("*.md")):
            if len(results) >= max_results:
                break
            relative = file.relative_to(self.root)
            if any(part.startswith(".") for part in relative.parts):
                continue

            content = file.read_text(encoding="utf-8", errors="replace")
            idx = content.lower().find(needle)
            if idx == -1:
                continue

            start = max(0, idx - SEARCH_CONTEXT_CHARS)
            end = min(len(content), idx + len(query) + SEARCH_CONTEXT_CHARS)
            excerpt = content[start:end].replace("\n", " ")
            line_number = content.count("\n", 0, idx) + 1
            results.append(f"{relative.as_posix()} (line {line_number}): ...{excerpt}...")

        if not results:
            return f'No files found containing "{query}".'
        return "\n".join(results)

    def delete_file(self, path: str) -> str:
        target = self._resolve(path)
        if target == self.root or not target.exists():
            raise VaultError(f"File not found: {path}")

        trash = self.root / TRASH_FOLDER
        trash.mkdir(exist_ok=True)
        destination = trash / target.name
        if destination.exists():
            stamp = datetime.now(UTC).strftime("%Y%m%d%H%M%S%f")
            destination = trash / f"{target.stem}-{stamp}{target.suffix}"

        shutil.move(str(target), str(destination))
        if self.active_path == self._relative_or_none(target):
            self.active_path = None
        logger.info(f"Moved {path} to trash")
        return f"File deleted (moved to trash): {path}"

    def _relative_or_none(self, target: Path) -> str | None:
        try:
            return self._relative(target)
        except ValueError:
            return None

    def rename_file(self, old_path: str, new_path: str) -> str:
        source = self._resolve(old_path)
        if source == self.root or not source.exists():
            raise VaultError(f"File not found: {old_path}")

        destination = self._resolve(new_path)
        if destination.exists():
            raise VaultError(f"Destination already exists: {new_path}")

        destination.parent.mkdir(parents=True, exist_ok=True)
        source.rename(destination)
        if self.active_path == self._relative(source):
            self.active_path = self._relative(destination)
        return f"File renamed: {old_path} -> {new_path}"

    def create_folder(self, path: str) -> str:
        target = self._resolve(path)
        normalized = normalize_path(path)
        if target.exists():
            return f"Folder already exists: {normalized}"

        target.mkdir(parents=True)
        return f"Folder created: {normalized}"

    def get_active_file(self) -> str:
        if self.active_path is None:
            return "No file is currently active."

        target = self._resolve(self.active_path)
        if not target.is_file():
            self.active_path = None
            return "No file is currently active."
        return f"Active file: {self.active_path}\n\n{target.read_text(encoding='utf-8')}"

    def append_to_file(self, path: str, content: str) -> str:
        if not content:
            raise VaultError("content must not be empty")

        target = self._require_file(path)
        existing = target.read_text(encoding="utf-8")
        target.write_text(existing + "\n" + content, encoding="utf-8")
        return f"Content appended to: {path}"

    def insert_at_line(self, path: str, line: int, content: str) -> str:
        if line < 1:
            raise VaultError("line must be 1 or greater")
        if not content:
            raise VaultError("content must not be empty")

        target = self._require_file(path)
        lines = target.read_text(encoding="utf-8").split("\n")
        insert_idx = min(line - 1, len(lines))
        lines.insert(insert_idx, content)
        target.write_text("\n".join(lines), encoding="utf-8")
        return f"Content inserted at line {line} in: {path}"
