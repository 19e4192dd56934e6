"""Loader and serializer for Documenter search_index.js files."""

import json
import re
from pathlib import Path

from documenter_search_index.models import CATEGORIES, DocumentationEntry, IndexedBuild, SearchIndex

_BINDING_RE = re.compile(r"\A\s*var\s+([A-Za-z_$][\w$]*)\s*=\s*(.*?)\s*;?\s*\Z", re.DOTALL)
_PROMPT_RE = re.compile(r"^julia>( |$)")


def validate_entry(entry: DocumentationEntry) -> None:
    """Check that an entry is a well-formed search index record.

    Page entries may have an empty location, which points at the build's
    root page. Text may always be empty.

    Args:
        entry: Entry to validate.

    Raises:
        ValueError: If a required field is empty or the category is unknown.
    """
    for name in ("page", "title", "category"):
        if not getattr(entry, name):
            msg = f"Field '{name}' must not be empty"
            raise ValueError(msg)
    if entry.category not in CATEGORIES:
        msg = f"Unknown category: {entry.category!r}"
        raise ValueError(msg)
    if not entry.location and entry.category != "page":
        msg = f"Empty location is only allowed for pages, not {entry.category!r}"
        raise ValueError(msg)


def extract_examples(text: str) -> list[str]:
    """Extract the REPL examples embedded in an entry's text.

    A block starts at a ``julia>`` prompt line and runs until the next blank
    line, so continuation lines and printed output stay with their prompt.

    Args:
        text: Rendered documentation text.

    Returns:
        Example blocks in order of appearance.
    """
    examples: list[str] = []
    block: list[str] = []
    for line in text.splitlines():
        if block:
            if line.strip():
                block.append(line)
                continue
            examples.append("\n".join(block))
            block = []
        elif _PROMPT_RE.match(line):
            block.append(line)
    if block:
        examples.append("\n".join(block))
    return examples


def searchable_text(text: str) -> str:
    """Strip REPL examples and collapse whitespace for full-text indexing.

    Args:
        text: Rendered documentation text.

    Returns:
        Cleaned text suitable for indexing.
    """
    kept: list[str] = []
    in_example = False
    for line in text.splitlines():
        if in_example:
            in_example = bool(line.strip())
            continue
        if _PROMPT_RE.match(line):
            in_example = True
            continue
        kept.append(line)
    return re.sub(r"\s+", " ", " ".join(kept)).strip()


class SearchIndexParser:
    """Parses and writes Documenter search_index.js files."""

    SEARCH_INDEX_FILENAME = "search_index.js"
    DEFAULT_BINDING = "documenterSearchIndex"

    def parse_source(self, source: str) -> SearchIndex:
        """Parse the contents of a search_index.js file.

        Args:
            source: JavaScript source assigning the index to one variable.

        Returns:
            SearchIndex with entries in file order.

        Raises:
            ValueError: If the source is not a valid search index.
        """
        match = _BINDING_RE.match(source)
        if match is None:
            msg = "Search index must assign a single 'var' binding"
            raise ValueError(msg)
        binding, payload = match.groups()

        try:
            data = json.loads(payload)
        except json.JSONDecodeError as e:
            msg = f"Search index payload is not valid JSON: {e}"
            raise ValueError(msg) from e

        if not isinstance(data, dict) or not isinstance(data.get("docs"), list):
            msg = "Search index payload must be an object with a 'docs' list"
            raise ValueError(msg)

        entries = []
        for position, record in enumerate(data["docs"]):
            try:
                if not isinstance(record, dict):
                    msg = "Entry must be an object"
                    raise ValueError(msg)
                entry = DocumentationEntry.from_dict(record)
                validate_entry(entry)
            except ValueError as e:
                msg = f"Invalid entry at position {position}: {e}"
                raise ValueError(msg) from e
            entries.append(entry)

        return SearchIndex(entries=tuple(entries), binding=binding)

    def serialize(self, index: SearchIndex) -> str:
        """Write a search index in the layout Documenter emits.

        Args:
            index: Search index to write.

        Returns:
            JavaScript source of the search index file.
        """
        docs = json.dumps(
            [entry.to_dict() for entry in index.entries],
            ensure_ascii=False,
            separators=(",", ":"),
        )
        return f'var {index.binding} = {{"docs":\n{docs}\n}}\n'

    def load(self, file_path: Path) -> SearchIndex:
        """Read and parse a search_index.js file.

        Args:
            file_path: Path to the file.

        Returns:
            SearchIndex instance.

        Raises:
            ValueError: If the file is not UTF-8 or not a valid search index.
        """
        source = file_path.read_text(encoding="utf-8")
        return self.parse_source(source)

    def dump(self, index: SearchIndex, file_path: Path) -> None:
        """Write a search index to a file.

        Args:
            index: Search index to write.
            file_path: Destination path.
        """
        file_path.write_text(self.serialize(index), encoding="utf-8")

    def parse_file(self, file_path: Path, base_path: Path) -> IndexedBuild | None:
        """Load a search index file from a deployed documentation tree.

        Args:
            file_path: Path to the search_index.js file.
            base_path: Root of the deployed documentation tree.

        Returns:
            IndexedBuild instance or None if parsing fails.
        """
        try:
            index = self.load(file_path)
        except (OSError, ValueError):
            return None

        relative_path = file_path.relative_to(base_path)
        return IndexedBuild(
            version=self._extract_version(relative_path),
            path=relative_path.as_posix(),
            index=index,
        )

    def _extract_version(self, relative_path: Path) -> str:
        """Extract the build version from the file's directory.

        Args:
            relative_path: Path relative to the documentation root.

        Returns:
            Directory of the build (e.g. 'stable', 'previews/PR6') or 'root'.
        """
        parent = relative_path.parent
        return parent.as_posix() if parent.parts else "root"
