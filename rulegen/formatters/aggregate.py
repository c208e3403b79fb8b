"""
Single-document formatters.

CLAUDE.md, AGENTS.md and GitHub Copilot instructions all take every rule
concatenated into one markdown file.
"""

from typing import Dict, Sequence

from ..models import RuleRecord
from .base import BaseFormatter

GENERATED_NOTICE = '<!-- Generated by rulegen. Edit freely; rerunning will overwrite this file. -->'


class AggregateFormatter(BaseFormatter):
    """Concatenates all rules into one markdown document."""

    def __init__(self, name: str, description: str, target_path: str, heading: str):
        super().__init__(name=name, description=description, file_extensions=['.md'])
        self.target_path = target_path
        self.heading = heading

    def convert(self, rules: Sequence[RuleRecord]) -> Dict[str, str]:
        self.validate_content(rules)
        sections = [self._render_section(rule) for rule in rules]
        content = f'# {self.heading}\n\n{GENERATED_NOTICE}\n\n' + '\n\n'.join(sections) + '\n'
        return {self.target_path: content}

    def _render_section(self, rule: RuleRecord) -> str:
        if rule.always_apply:
            scope = 'Applies to all files.'
        else:
            scope = 'Applies to: ' + ', '.join(f'`{g}`' for g in rule.glob_patterns)
        return f'## {rule.title}\n\n_{rule.description}_\n\n{scope}\n\n{rule.body}'


class ClaudeFormatter(AggregateFormatter):
    def __init__(self):
        super().__init__(
            name='claude-md',
            description='All rules in a single CLAUDE.md',
            target_path='CLAUDE.md',
            heading='Project Conventions',
        )


class AgentsFormatter(AggregateFormatter):
    def __init__(self):
        super().__init__(
            name='agents-md',
            description='All rules in a single AGENTS.md',
            target_path='AGENTS.md',
            heading='Agent Instructions',
        )


class CopilotFormatter(AggregateFormatter):
    def __init__(self):
        super().__init__(
            name='copilot',
            description='All rules in .github/copilot-instructions.md',
            target_path='.github/copilot-instructions.md',
            heading='Copilot Instructions',
        )
