"""Indexer for search_index.js files of deployed Documenter builds."""

import logging
import subprocess
import tempfile
from pathlib import Path

from documenter_search_index.database import EntryDatabase
from documenter_search_index.models import IndexedBuild
from documenter_search_index.parser import SearchIndexParser

logger = logging.getLogger(__name__)


class DocumenterIndexer:
    """Indexes documentation builds deployed by Documenter (e.g. to a gh-pages branch)."""

    DEFAULT_BRANCH = "gh-pages"

    def __init__(self, database: EntryDatabase, base_url: str | None = None) -> None:
        """Initialise indexer with database instance.

        Args:
            database: EntryDatabase instance for storing entries.
            base_url: URL the documentation tree is served from, used for result links.
        """
        self.database = database
        self.base_url = base_url
        self.parser = SearchIndexParser()

    def index_from_git(
        self, repo_url: str, branch: str = DEFAULT_BRANCH, shallow: bool = True, rebuild: bool = False
    ) -> int:
        """Clone a documentation branch and index every build on it.

        Args:
            repo_url: Git URL of the repository.
            branch: Branch the documentation is deployed to.
            shallow: Whether to do a shallow clone.
            rebuild: Clear the existing index once the clone has succeeded.

        Returns:
            Number of entries indexed.
        """
        with tempfile.TemporaryDirectory() as temp_dir:
            repo_path = Path(temp_dir) / "docs"
            self._clone_repository(repo_url, repo_path, branch, shallow)
            if rebuild:
                self._clear()
            return self._index_directory(repo_path)

    def index_from_path(self, docs_path: Path, rebuild: bool = False) -> int:
        """Index a search_index.js file or a directory of deployed builds.

        Args:
            docs_path: Path to a search index file or a documentation tree.
            rebuild: Clear the existing index once the path has been checked.

        Returns:
            Number of entries indexed.

        Raises:
            ValueError: If the path does not exist, or is a file that is not a valid search index.
        """
        if docs_path.is_file():
            index = self.parser.load(docs_path)
            if rebuild:
                self._clear()
            build = IndexedBuild(version="root", path=docs_path.name, index=index)
            return self._store_build(build)

        if not docs_path.exists():
            msg = f"Documentation path does not exist: {docs_path}"
            raise ValueError(msg)
        if rebuild:
            self._clear()
        return self._index_directory(docs_path)

    def _clear(self) -> None:
        """Remove every stored build."""
        logger.info("Clearing existing index...")
        self.database.clear()

    def _clone_repository(self, repo_url: str, target_path: Path, branch: str, shallow: bool) -> None:
        """Clone the documentation branch of a repository.

        Args:
            repo_url: Git URL of the repository.
            target_path: Directory to clone into.
            branch: Git branch to clone.
            shallow: Whether to do a shallow clone.
        """
        cmd = ["git", "clone"]
        if shallow:
            cmd.extend(["--depth", "1", "--single-branch"])
        cmd.extend(["--branch", branch, repo_url, str(target_path)])

        logger.info("Cloning %s (branch %s)...", repo_url, branch)
        subprocess.run(cmd, check=True, capture_output=True)  # noqa: S603
        logger.info("Repository cloned successfully")

    def _index_directory(self, docs_path: Path) -> int:
        """Index all search index files below a documentation directory.

        Args:
            docs_path: Path to the documentation directory.

        Returns:
            Number of entries indexed.

        Raises:
            ValueError: If the documentation path does not exist.
        """
        if not docs_path.exists():
            msg = f"Documentation path does not exist: {docs_path}"
            raise ValueError(msg)

        indexed_count = 0
        index_files = sorted(
            path
            for path in docs_path.rglob(SearchIndexParser.SEARCH_INDEX_FILENAME)
            if ".git" not in path.relative_to(docs_path).parts
        )

        logger.info("Found %d search index files to index", len(index_files))

        for file_path in index_files:
            build = self.parser.parse_file(file_path, docs_path)
            if build:
                indexed_count += self._store_build(build)
            else:
                logger.warning("Failed to parse: %s", file_path)

        logger.info("Successfully indexed %d entries", indexed_count)
        return indexed_count

    def _store_build(self, build: IndexedBuild) -> int:
        """Replace a build's entries in the database.

        Args:
            build: Loaded build.

        Returns:
            Number of entries stored.
        """
        count = self.database.replace_build(
            build.version,
            build.index.entries,
            base_url=self._build_url(build.version),
            source=build.path,
            binding=build.index.binding,
        )
        logger.debug("Indexed %d entries for %s from %s", count, build.version, build.path)
        return count

    def _build_url(self, version: str) -> str | None:
        """Compute the URL a build is served from.

        Args:
            version: Build version.

        Returns:
            URL of the build root, or None without a base URL.
        """
        if not self.base_url:
            return None
        base_url = self.base_url.rstrip("/")
        if version == "root":
            return base_url
        return f"{base_url}/{version}"

    def rebuild_index(self, repo_url: str, branch: str = DEFAULT_BRANCH) -> int:
        """Clear existing index and rebuild from scratch.

        Args:
            repo_url: Git URL of the repository.
            branch: Git branch to index from.

        Returns:
            Number of entries indexed.
        """
        return self.index_from_git(repo_url, branch, rebuild=True)
