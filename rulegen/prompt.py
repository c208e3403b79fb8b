#!/usr/bin/env python3
"""
Prompt construction for rule generation.
"""

import json
import logging
import tomllib
from typing import Optional, Sequence

from .extractor import RULE_DELIMITER, StructuredRule
from .models import CandidateFile

logger = logging.getLogger(__name__)

# Response schema for structured mode, in the generic form google-genai accepts
RULE_SCHEMA = list[StructuredRule]

MIN_RULES = 5

INTRO = """You are an expert at writing AI coding rules. Your job is to analyze a SPECIFIC codebase and generate rules that capture THIS project's unique patterns.

PROJECT: {project_name}
{stack}
CRITICAL INSTRUCTION: Do NOT generate generic coding advice. Every rule you write must reference a specific pattern you observed in the files below. If you can't point to a line of code that demonstrates the pattern, don't write the rule.

BAD (generic): "Use const instead of let" (any linter catches this)
BAD (generic): "Prefer async/await" (obvious, not project-specific)

GOOD (specific): "This project exports a singleton from db.ts. Always import prisma from '../db', never instantiate PrismaClient directly"
GOOD (specific): "Route files in src/routes/ export a Router, validate with Zod schemas before handlers, and return consistent {{ data }} or {{ error }} shapes"

WHAT TO LOOK FOR:
1. How does this project structure its modules? (barrel exports, flat files, feature folders)
2. What patterns repeat across multiple files? (error handling, validation, response shapes)
3. What conventions would an AI get wrong without guidance? (import paths, naming unique to this project)
4. What architectural boundaries exist? (separation of concerns, where side effects live)
5. What framework-specific patterns does this project use? (THIS project's usage, not generic advice)
"""

FREE_TEXT_FORMAT = """
OUTPUT FORMAT:
Generate each rule in this exact format, separated by {delimiter}

---
description: One-line description referencing this specific project
globs: ["actual/paths/from/this/project/**/*.ext"]
alwaysApply: false
---

# Rule Title

Specific instructions referencing actual file paths, function names, and patterns from this codebase.
Include a concrete example from the actual code when possible.

{delimiter}
"""

STRUCTURED_FORMAT = """
OUTPUT FORMAT:
Return a JSON array. Each element is an object with these fields:
- "title": short rule title
- "description": one-line description referencing this specific project
- "globs": array of glob patterns matching actual directories in this project
- "alwaysApply": true or false
- "body": the rule instructions in markdown, referencing actual file paths, function names and patterns
"""

CONSTRAINTS = """
CONSTRAINTS:
- Generate between {min_rules} and {max_rules} rules. No more.
- If you find yourself generating more than {max_rules}, you are being too granular. Merge related patterns into single rules.
- Set alwaysApply: true for max 2 rules (only truly project-wide conventions)
- Use glob patterns that match ACTUAL directories in this project (e.g., "src/routes/**" not "**/*.ts")
- Each rule 100-250 words
- ONE rule per architectural pattern, not one rule per code branch or validation check
- No rules about: semicolons, trailing commas, const vs let, obvious framework conventions

Here are the codebase files:

"""


def _find(files: Sequence[CandidateFile], relative_path: str) -> Optional[CandidateFile]:
    for f in files:
        if f.relative_path == relative_path:
            return f
    return None


def detect_stack(files: Sequence[CandidateFile]) -> str:
    """Describe dependencies declared in package.json or pyproject.toml."""
    lines = []

    pkg_file = _find(files, "package.json")
    if pkg_file:
        try:
            pkg = json.loads(pkg_file.content)
            deps = list((pkg.get("dependencies") or {}).keys())
            dev_deps = list((pkg.get("devDependencies") or {}).keys())
            lines.append(f"- Dependencies: {', '.join(deps) or 'none'}")
            lines.append(f"- Dev dependencies: {', '.join(dev_deps) or 'none'}")
            lines.append(f"- Type: {pkg.get('type') or 'commonjs'}")
        except (ValueError, AttributeError) as e:
            logger.debug("Ignoring unparseable package.json: %s", e)

    pyproject = _find(files, "pyproject.toml")
    if pyproject:
        try:
            data = tomllib.loads(pyproject.content)
            deps = data.get("project", {}).get("dependencies") or []
            lines.append(f"- Python dependencies: {', '.join(deps) or 'none'}")
        except (tomllib.TOMLDecodeError, AttributeError) as e:
            logger.debug("Ignoring unparseable pyproject.toml: %s", e)

    if not lines:
        return ""
    return "\nDETECTED STACK:\n" + "\n".join(lines) + "\n"


def render_file(candidate: CandidateFile) -> str:
    """Label a file with its path and fence it with its extension."""
    lang = candidate.extension.lstrip(".")
    return f"## {candidate.relative_path}\n```{lang}\n{candidate.content}\n```\n\n"


def build_prompt(files: Sequence[CandidateFile], project_name: str,
                 max_rules: int = 8, structured: bool = False) -> str:
    """Build the full prompt: instructions followed by every selected file.

    Files appear in the order given, which is the selection order.
    """
    min_rules = min(MIN_RULES, max_rules)

    prompt = INTRO.format(project_name=project_name, stack=detect_stack(files))
    if structured:
        prompt += STRUCTURED_FORMAT
    else:
        prompt += FREE_TEXT_FORMAT.format(delimiter=RULE_DELIMITER)
    prompt += CONSTRAINTS.format(min_rules=min_rules, max_rules=max_rules)

    for candidate in files:
        prompt += render_file(candidate)

    return prompt
