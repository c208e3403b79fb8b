"""
Format manager for rule output formatters.

Provides the registry of available formatters and dispatches to them.
"""

import logging
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from ..models import RuleRecord
from .aggregate import AgentsFormatter, ClaudeFormatter, CopilotFormatter
from .base import BaseFormatter, FormatError
from .cursor import CursorFormatter
from .windsurf import WindsurfFormatter

logger = logging.getLogger(__name__)


class FormatManager:
    """Manages and dispatches to different output formatters."""

    def __init__(self):
        self.formatters: Dict[str, BaseFormatter] = {}
        self._register_builtin_formatters()

    def _register_builtin_formatters(self) -> None:
        self.register_formatter(CursorFormatter())
        self.register_formatter(ClaudeFormatter())
        self.register_formatter(AgentsFormatter())
        self.register_formatter(CopilotFormatter())
        self.register_formatter(WindsurfFormatter())

    def register_formatter(self, formatter: BaseFormatter) -> None:
        """Register a new formatter.

        Raises:
            FormatError: If the formatter name is already registered
        """
        if formatter.name in self.formatters:
            raise FormatError(f"Formatter '{formatter.name}' is already registered")

        self.formatters[formatter.name] = formatter

    def get_formatter(self, name: str) -> BaseFormatter:
        """Get a formatter by name.

        Raises:
            FormatError: If formatter not found
        """
        if name not in self.formatters:
            available = ', '.join(self.get_available_formats())
            raise FormatError(f"Formatter '{name}' not found. Available: {available}")

        return self.formatters[name]

    def get_available_formats(self) -> List[str]:
        return sorted(self.formatters.keys())

    def get_format_info(self, name: Optional[str] = None) -> Dict:
        if name:
            return self.get_formatter(name).get_info()

        return {
            fmt_name: formatter.get_info()
            for fmt_name, formatter in self.formatters.items()
        }

    def convert_and_save(self, rules: Sequence[RuleRecord], formats: List[str],
                         target_dir: Path, repo_path: Path,
                         overwrite: bool = True) -> Dict[str, List[str]]:
        """Convert and save rules in each of the given formats.

        Args:
            rules: Rule records to write
            formats: Format names to generate
            target_dir: Directory to save files in
            repo_path: Repository root path
            overwrite: Replace existing files instead of numbering new ones

        Returns:
            Dict mapping format name to list of created files

        Raises:
            FormatError: If there is nothing to write or every format failed
        """
        if not rules:
            raise FormatError("No rules provided for conversion")

        if not formats:
            raise FormatError("No formats specified")

        results = {}
        errors = []

        for format_name in formats:
            try:
                formatter = self.get_formatter(format_name)
                content_map = formatter.convert(rules)
                results[format_name] = formatter.save(content_map, target_dir, repo_path, overwrite=overwrite)
            except FormatError as e:
                errors.append(f"Failed to process {format_name} format: {e}")
                results[format_name] = []

        if errors and not any(results.values()):
            raise FormatError(f"All format operations failed: {'; '.join(errors)}")
        elif errors:
            logger.warning(f"Some format operations failed: {'; '.join(errors)}")

        return results

    def validate_formats(self, format_names: List[str]) -> None:
        """Raise FormatError if any name is not a registered format."""
        available = set(self.get_available_formats())
        invalid = set(format_names) - available

        if invalid:
            invalid_list = ', '.join(sorted(invalid))
            available_list = ', '.join(sorted(available))
            raise FormatError(f"Invalid formats: {invalid_list}. Available: {available_list}")

    def resolve_format_list(self, format_spec: str) -> List[str]:
        """Resolve 'all', a single name, or a comma-separated list to format names."""
        if format_spec == 'all':
            return self.get_available_formats()

        formats = [f.strip() for f in format_spec.split(',') if f.strip()]
        if not formats:
            raise FormatError("No formats specified")
        self.validate_formats(formats)
        return formats


# Global format manager instance
format_manager = FormatManager()
