"""
Cursor IDE formatter.

Generates one .mdc file per rule in .cursor/rules/.
"""

from typing import Dict, Sequence

from ..models import RuleRecord, render_rule
from .base import BaseFormatter

RULES_DIR = '.cursor/rules'


class CursorFormatter(BaseFormatter):
    """Formatter for Cursor IDE .mdc files."""

    def __init__(self):
        super().__init__(
            name='cursor',
            description='One .mdc file per rule in .cursor/rules/',
            file_extensions=['.mdc']
        )

    def convert(self, rules: Sequence[RuleRecord]) -> Dict[str, str]:
        self.validate_content(rules)
        names = self._unique_names(rules, '.mdc')
        return {f'{RULES_DIR}/{name}': render_rule(rule) for name, rule in zip(names, rules)}
