"""Data models for documentation search index entries."""

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field, fields

CATEGORIES = frozenset(
    {
        "page",
        "section",
        "module",
        "constant",
        "type",
        "function",
        "method",
        "macro",
    }
)


@dataclass(frozen=True)
class DocumentationEntry:
    """A single record of a documentation search index."""

    location: str
    page: str
    title: str
    text: str
    category: str

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> "DocumentationEntry":
        """Build an entry from a decoded search index record.

        Args:
            data: Mapping with exactly the entry keys.

        Returns:
            DocumentationEntry instance.

        Raises:
            ValueError: If keys are missing or unexpected, or a value is not a string.
        """
        names = [f.name for f in fields(cls)]
        missing = [name for name in names if name not in data]
        if missing:
            msg = f"Missing keys: {', '.join(missing)}"
            raise ValueError(msg)
        extra = sorted(set(data) - set(names))
        if extra:
            msg = f"Unexpected keys: {', '.join(extra)}"
            raise ValueError(msg)
        for name in names:
            if not isinstance(data[name], str):
                msg = f"Field '{name}' must be a string"
                raise ValueError(msg)
        return cls(**{name: data[name] for name in names})  # type: ignore[arg-type]

    def to_dict(self) -> dict[str, str]:
        """Return the entry as a record with keys in field order."""
        return {f.name: getattr(self, f.name) for f in fields(self)}

    @property
    def path(self) -> str:
        """Page path part of the location (before '#')."""
        return self.location.partition("#")[0]

    @property
    def anchor(self) -> str:
        """Anchor part of the location (after '#')."""
        return self.location.partition("#")[2]

    def url(self, base_url: str) -> str:
        """Join the location onto a documentation build URL.

        Args:
            base_url: URL of the documentation build root.

        Returns:
            Absolute URL of the entry.
        """
        return f"{base_url.rstrip('/')}/{self.location}"


@dataclass(frozen=True)
class SearchIndex:
    """An ordered documentation search index."""

    entries: tuple[DocumentationEntry, ...] = ()
    binding: str = "documenterSearchIndex"

    def __len__(self) -> int:
        """Number of entries."""
        return len(self.entries)

    def __iter__(self) -> Iterator[DocumentationEntry]:
        """Iterate entries in navigation order."""
        return iter(self.entries)

    def categories(self) -> dict[str, int]:
        """Count entries per category, in order of first appearance."""
        counts: dict[str, int] = {}
        for entry in self.entries:
            counts[entry.category] = counts.get(entry.category, 0) + 1
        return counts


@dataclass
class IndexedBuild:
    """A search index loaded from a deployed documentation build."""

    version: str
    path: str
    index: SearchIndex = field(default_factory=SearchIndex)


@dataclass
class SearchResult:
    """Represents a search result."""

    version: str
    location: str
    title: str
    page: str
    category: str
    url: str
    snippet: str
    score: float
