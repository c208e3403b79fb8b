"""
Base formatter interface for rule output formats.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Sequence

from ..models import RuleRecord


class FormatError(Exception):
    """Exception raised when format operations fail."""
    pass


class BaseFormatter(ABC):
    """Base class for all output formatters."""

    def __init__(self, name: str, description: str, file_extensions: List[str]):
        """Initialize the formatter.

        Args:
            name: Short name for the format (e.g., 'cursor', 'claude-md')
            description: Human-readable description
            file_extensions: File extensions this format uses (e.g., ['.mdc'])
        """
        self.name = name
        self.description = description
        self.file_extensions = file_extensions

    @abstractmethod
    def convert(self, rules: Sequence[RuleRecord]) -> Dict[str, str]:
        """Convert rules to this format.

        Args:
            rules: Rule records in output order

        Returns:
            Dict mapping path (relative to the target directory) to content

        Raises:
            FormatError: If conversion fails
        """
        pass

    def save(self, content_map: Dict[str, str], target_dir: Path, repo_path: Path,
             overwrite: bool = True) -> List[str]:
        """Write converted content under the target directory.

        Args:
            content_map: Dict from convert() mapping relative path to content
            target_dir: Directory to save files in
            repo_path: Repository root path for relative path calculation
            overwrite: Replace existing files; otherwise write a numbered sibling

        Returns:
            List of created file paths (relative to repo_path when possible)

        Raises:
            FormatError: If writing fails
        """
        created_files = []

        for rel_path, content in content_map.items():
            file_path = target_dir / rel_path
            if not overwrite:
                file_path = self._unused_path(file_path)

            try:
                file_path.parent.mkdir(parents=True, exist_ok=True)
                file_path.write_text(content, encoding='utf-8')
            except (OSError, UnicodeError) as e:
                raise FormatError(f"Failed to write {self.name} file {file_path}: {e}")
            created_files.append(self._safe_relative_path(file_path, repo_path))

        return created_files

    def validate_content(self, rules: Sequence[RuleRecord]) -> None:
        """Check that rules can be converted.

        Raises:
            FormatError: If there is nothing to convert
        """
        if not rules:
            raise FormatError(f"No rules provided for {self.name} format")

        for i, rule in enumerate(rules):
            if not rule.body.strip():
                raise FormatError(f"Empty rule body at index {i} for {self.name} format")

    def get_info(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'description': self.description,
            'file_extensions': self.file_extensions
        }

    @staticmethod
    def _unique_names(rules: Sequence[RuleRecord], extension: str) -> List[str]:
        """File names from rule slugs, numbering repeats within one run."""
        seen: Dict[str, int] = {}
        names = []
        for rule in rules:
            slug = rule.slug
            count = seen.get(slug, 0)
            seen[slug] = count + 1
            names.append(f"{slug}{extension}" if count == 0 else f"{slug}-{count}{extension}")
        return names

    @staticmethod
    def _unused_path(file_path: Path) -> Path:
        counter = 1
        candidate = file_path
        while candidate.exists():
            candidate = file_path.with_name(f"{file_path.stem}-{counter}{file_path.suffix}")
            counter += 1
        return candidate

    def _safe_relative_path(self, file_path: Path, repo_path: Path) -> str:
        """Relative path when possible, absolute otherwise."""
        try:
            return file_path.relative_to(repo_path).as_posix()
        except (ValueError, OSError):
            # Symlinks, temp paths, cross-platform issues
            return str(file_path)
