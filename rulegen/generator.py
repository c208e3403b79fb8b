#!/usr/bin/env python3
"""
Rule generation pipeline.

scan -> select (bounded) -> build prompt -> call model -> extract rules.
Each run owns its candidate list and model output; nothing is shared
between runs.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from . import budgeter, extractor
from .config import GeneratorConfig
from .gemini_client import GeminiClient
from .logging_config import get_generation_logger, get_logger
from .models import CandidateFile, RuleSet, SelectionResult, UsageCounters
from .prompt import RULE_SCHEMA, build_prompt
from .scanner import ProjectScanner


class NoCandidatesError(Exception):
    """Raised when a project has no files eligible for analysis."""
    pass


class NoRulesGeneratedError(Exception):
    """Raised when the model output yields no usable rules."""
    pass


@dataclass
class GenerationResult:
    """Outcome of one generation run."""
    rules: RuleSet
    selection: SelectionResult
    usage: UsageCounters = field(default_factory=UsageCounters)
    candidate_count: int = 0


class RuleGenerator:
    """Runs the rule generation pipeline for one project."""

    def __init__(self, project_path: str, config: GeneratorConfig,
                 client: Optional[GeminiClient] = None, api_key: Optional[str] = None):
        """Initialize the generator.

        Args:
            project_path: Project root to scan
            config: Effective configuration
            client: Model client; built from ``api_key`` and ``config`` if omitted
            api_key: Gemini API key, required when ``client`` is omitted
        """
        self.project_path = Path(project_path).resolve()
        self.config = config
        self.scanner = ProjectScanner(str(self.project_path))
        self._client = client
        self._api_key = api_key

        self.logger = get_logger("generator")
        self.generation_logger = get_generation_logger()

    @property
    def client(self) -> GeminiClient:
        if self._client is None:
            self._client = GeminiClient(
                api_key=self._api_key,
                model=self.config.model,
                timeout_seconds=self.config.timeout_seconds,
                temperature=self.config.temperature,
                max_output_tokens=self.config.max_output_tokens,
            )
        return self._client

    def scan(self) -> List[CandidateFile]:
        """Discover candidate files.

        Raises:
            NoCandidatesError: If nothing eligible was found
        """
        candidates = self.scanner.scan()
        self.logger.info("Scan complete",
                         project=str(self.project_path),
                         candidates=len(candidates),
                         skipped_large=len(self.scanner.skipped_large),
                         skipped_unreadable=len(self.scanner.skipped_unreadable))
        if not candidates:
            raise NoCandidatesError("No source files found. Is this a code project?")
        return candidates

    def select(self, candidates: List[CandidateFile]) -> SelectionResult:
        """Apply the file cap and token budget.

        Raises:
            NoCandidatesError: If no file survives the cap and budget
        """
        selection = budgeter.select(candidates, self.config.max_files, self.config.token_ceiling)
        self.logger.verbose("Selection complete",
                            selected=len(selection),
                            estimated_tokens=selection.total_tokens,
                            remaining_budget=selection.remaining_budget,
                            files=[f.relative_path for f in selection])
        if not selection.files:
            raise NoCandidatesError(
                f"No files fit within --max-files ({self.config.max_files}) "
                f"and the token budget ({self.config.token_ceiling:,})."
            )
        return selection

    def build_prompt(self, selection: SelectionResult) -> str:
        return build_prompt(
            selection.files,
            project_name=self.project_path.name,
            max_rules=self.config.max_rules,
            structured=self.config.structured_output,
        )

    async def generate(self, selection: SelectionResult) -> GenerationResult:
        """Call the model with the selected files and extract rules.

        Raises:
            ModelClientError: If the model call fails or times out
            NoRulesGeneratedError: If no usable rules could be extracted
        """
        prompt = self.build_prompt(selection)
        schema = RULE_SCHEMA if self.config.structured_output else None

        raw = await self.client.generate(prompt, response_schema=schema)
        rules = extractor.extract(raw, self.config.max_rules)

        self.generation_logger.info(
            f"Generated {len(rules)} rules for {self.project_path.name} "
            f"from {len(selection)} files with {self.config.model}"
        )
        if not rules:
            self.logger.warning("No rules extracted from model output",
                                response_chars=len(raw.text))
            raise NoRulesGeneratedError(
                "Gemini did not generate any rules. Try a different model or add more source files."
            )
        return GenerationResult(rules=rules, selection=selection, usage=raw.usage)

    async def run(self) -> GenerationResult:
        """Scan, select and generate in one go."""
        candidates = self.scan()
        selection = self.select(candidates)
        result = await self.generate(selection)
        result.candidate_count = len(candidates)
        return result
