"""
Windsurf formatter.

Generates one markdown file per rule in .windsurf/rules/ with Windsurf's
activation front matter.
"""

import json
from typing import Dict, Sequence

from ..models import RuleRecord
from .base import BaseFormatter

RULES_DIR = '.windsurf/rules'


class WindsurfFormatter(BaseFormatter):
    """Formatter for Windsurf workspace rules."""

    def __init__(self):
        super().__init__(
            name='windsurf',
            description='One .md file per rule in .windsurf/rules/',
            file_extensions=['.md']
        )

    def convert(self, rules: Sequence[RuleRecord]) -> Dict[str, str]:
        self.validate_content(rules)
        names = self._unique_names(rules, '.md')
        return {f'{RULES_DIR}/{name}': self._render(rule) for name, rule in zip(names, rules)}

    def _render(self, rule: RuleRecord) -> str:
        if rule.always_apply:
            trigger = 'trigger: always_on\n'
        else:
            trigger = f'trigger: glob\nglobs: {json.dumps(list(rule.glob_patterns))}\n'
        return (
            f'---\n'
            f'{trigger}'
            f'description: {rule.description}\n'
            f'---\n'
            f'\n'
            f'# {rule.title}\n'
            f'\n'
            f'{rule.body}\n'
        )
