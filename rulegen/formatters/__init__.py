"""
Output formatters for generated rules.
"""

from .base import BaseFormatter, FormatError
from .cursor import CursorFormatter
from .windsurf import WindsurfFormatter
from .aggregate import AggregateFormatter, AgentsFormatter, ClaudeFormatter, CopilotFormatter
from .manager import FormatManager

__all__ = [
    'BaseFormatter', 'FormatError', 'CursorFormatter', 'WindsurfFormatter',
    'AggregateFormatter', 'ClaudeFormatter', 'AgentsFormatter', 'CopilotFormatter',
    'FormatManager',
]
