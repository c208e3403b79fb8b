#!/usr/bin/env python3
"""
Rule extraction from raw model output.

The model is asked either for a JSON array of rule objects (structured
mode) or for free text made of front-matter rule blocks separated by
``===RULE===``. Models do not reliably follow either format, so parsing
degrades step by step instead of failing:

1. Structured payload validated against ``StructuredRule``.
2. Free text split into blocks by the first splitting strategy that
   yields more than one block.
3. Each block read as front matter, or failing that as the inline
   ``**Description:**`` markdown dialect.

``extract`` never raises. The worst outcome is an empty rule list.
"""

import logging
import re
from typing import Callable, List, Optional, Sequence, Tuple, Union

import yaml
from pydantic import BaseModel, ConfigDict, StrictBool, StrictStr, TypeAdapter, ValidationError

from .models import (
    DEFAULT_DESCRIPTION,
    DEFAULT_GLOBS,
    DEFAULT_TITLE,
    RawModelOutput,
    RuleRecord,
    RuleSet,
)

logger = logging.getLogger(__name__)

RULE_DELIMITER = "===RULE==="


class StructuredRule(BaseModel):
    """Wire shape of one rule in structured mode."""
    model_config = ConfigDict(extra="ignore")

    title: StrictStr
    description: StrictStr
    globs: List[StrictStr]
    alwaysApply: StrictBool
    body: StrictStr


_STRUCTURED_ADAPTER = TypeAdapter(List[StructuredRule])

_CODE_FENCE = re.compile(r"^\s*```[\w-]*[ \t]*\n(.*?)\n[ \t]*```\s*$", re.S)
_SEPARATOR_LINE = re.compile(r"^[ \t]*---[ \t]*$")
_KEY_LINE = re.compile(r"^[ \t]*\**[ \t]*(description|globs|alwaysapply)[ \t]*\**[ \t]*:", re.I)
_FRONT_MATTER = re.compile(r"(?:^|\n)[ \t]*---[ \t]*\n(.*?)\n[ \t]*---[ \t]*(?:\n(.*)|$)", re.S)
_HEADING = re.compile(r"^[ \t]*#{1,6}[ \t]+(.+?)(?:[ \t]+#+)?[ \t]*$", re.M)
_LIST_ITEM = re.compile(r"^[ \t]*-[ \t]+\S")
# **Title**, __Title__, *Title*, _Title_ or `Title` wrapping the whole heading
_EMPHASIS_WRAP = re.compile(r"(\*\*|__|\*|_|`)(.+)\1", re.S)
_RULE_PREFIX = re.compile(r"^rule[ \t]*:[ \t]*", re.I)
_INLINE_RULE_MARKER = re.compile(r"\*\*[ \t]*rule[ \t]*(?::[ \t]*\*\*|\*\*[ \t]*:)", re.I)


# ---------------------------------------------------------------------------
# Field helpers
# ---------------------------------------------------------------------------

def _inline_field_pattern(name: str) -> re.Pattern:
    # **Name:** value  or  **Name**: value
    return re.compile(
        rf"^[ \t]*\*\*[ \t]*{name}[ \t]*(?::[ \t]*\*\*|\*\*[ \t]*:)[ \t]*(.*?)[ \t]*$",
        re.I | re.M,
    )


_INLINE_DESCRIPTION = _inline_field_pattern("description")
_INLINE_GLOBS = _inline_field_pattern("globs")
_INLINE_ALWAYS_APPLY = _inline_field_pattern("alwaysapply")


def _front_matter_value(front_matter: str, name: str) -> Optional[str]:
    """Read ``name: value`` from a front-matter section.

    A key with an empty value followed by ``- item`` lines is read as a
    YAML block list.
    """
    lines = front_matter.splitlines()
    for i, line in enumerate(lines):
        match = re.match(
            rf"^[ \t]*(?:\*\*[ \t]*{name}[ \t]*(?::[ \t]*\*\*|\*\*[ \t]*:)|{name}[ \t]*:)[ \t]*(.*?)[ \t]*$",
            line, re.I,
        )
        if not match:
            continue
        value = match.group(1)
        if value:
            return value
        items = []
        for follow in lines[i + 1:]:
            item = re.match(r"^[ \t]*-[ \t]+(.+?)[ \t]*$", follow)
            if not item:
                break
            items.append(item.group(1))
        return ", ".join(items) if items else None
    return None


def _unquote(value: str) -> str:
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
        return value[1:-1].strip()
    return value


def parse_description(value: Optional[str]) -> str:
    if value is None:
        return DEFAULT_DESCRIPTION
    return _unquote(value) or DEFAULT_DESCRIPTION


def _split_globs(text: str) -> List[str]:
    """Split on commas that are not inside a {a,b} brace group."""
    items, current, depth = [], [], 0
    for char in text:
        if char == "{":
            depth += 1
        elif char == "}" and depth:
            depth -= 1
        elif char == "," and not depth:
            items.append("".join(current))
            current = []
            continue
        current.append(char)
    items.append("".join(current))
    return items


def _balanced(item: str) -> bool:
    return item.count("{") == item.count("}")


def parse_globs(value: Optional[str]) -> Tuple[str, ...]:
    """Parse a globs value written as a JSON/YAML list or comma-separated text."""
    if value is None or not value.strip():
        return DEFAULT_GLOBS

    try:
        parsed = yaml.safe_load(value)
    except (yaml.YAMLError, ValueError, RecursionError):
        # Bare globs such as **/*.ts are YAML aliases, not strings
        parsed = None

    # An unquoted [src/*.{ts,tsx}] splits inside the braces as a YAML flow list
    if isinstance(parsed, list) and all(_balanced(str(item)) for item in parsed):
        items = [str(item) for item in parsed if item is not None]
    elif isinstance(parsed, str):
        items = _split_globs(parsed)
    else:
        items = _split_globs(value.strip().strip("[]"))

    globs = tuple(g for g in (item.strip().strip("'\"`").strip() for item in items) if g)
    return globs or DEFAULT_GLOBS


def parse_always_apply(value: Optional[str]) -> bool:
    if value is None:
        return False
    return _unquote(value).lower().startswith("true")


def _strip_rule_prefix(title: str) -> str:
    return _RULE_PREFIX.sub("", title.strip()).strip()


def _clean_title(raw: str) -> str:
    """Heading text without a wrapping emphasis pair or a "Rule:" prefix."""
    title = raw.strip()
    wrapped = _EMPHASIS_WRAP.fullmatch(title)
    if wrapped and wrapped.group(1) not in wrapped.group(2):
        title = wrapped.group(2).strip()
    return _strip_rule_prefix(title)


def split_title(body: str, fallback_text: str = "") -> Tuple[str, str]:
    """Take the rule title from the first heading of the body.

    When the heading is the first line of the body it is removed from the
    body. If the body has no heading, ``fallback_text`` is searched.

    Returns:
        Tuple of (title, body)
    """
    title = ""
    match = _HEADING.search(body)
    if match:
        title = _clean_title(match.group(1))
        if not body[:match.start()].strip():
            body = body[match.end():]
    elif fallback_text:
        fallback = _HEADING.search(fallback_text)
        if fallback:
            title = _clean_title(fallback.group(1))
    return title or DEFAULT_TITLE, body.strip()


# ---------------------------------------------------------------------------
# Structured mode
# ---------------------------------------------------------------------------

def _strip_code_fence(text: str) -> str:
    match = _CODE_FENCE.match(text)
    return match.group(1) if match else text


def _record_from_structured(item: StructuredRule) -> Optional[RuleRecord]:
    body = item.body.strip()
    title = _strip_rule_prefix(item.title)
    if title:
        heading = _HEADING.match(body)
        if heading and title in (_strip_rule_prefix(heading.group(1)), _clean_title(heading.group(1))):
            body = body[heading.end():].strip()
    else:
        title, body = split_title(body)

    if not body:
        return None

    globs = tuple(g.strip() for g in item.globs if g.strip())
    return RuleRecord(
        title=title,
        description=item.description.strip() or DEFAULT_DESCRIPTION,
        glob_patterns=globs or DEFAULT_GLOBS,
        always_apply=item.alwaysApply,
        body=body,
    )


def parse_structured(text: str) -> Optional[RuleSet]:
    """Map a schema-conformant JSON payload to rule records.

    Returns:
        The records, or None when the payload does not match the schema
    """
    payload = _strip_code_fence(text.strip())
    if not payload.startswith("["):
        return None
    try:
        items = _STRUCTURED_ADAPTER.validate_json(payload)
    except (ValidationError, ValueError, RecursionError) as e:
        logger.debug("Structured payload rejected, falling back to free text: %s", e)
        return None

    rules = []
    for item in items:
        record = _record_from_structured(item)
        if record is not None:
            rules.append(record)
    return rules


# ---------------------------------------------------------------------------
# Free-text block splitting
# ---------------------------------------------------------------------------

def _previous_nonblank(lines: Sequence[str], index: int) -> Optional[int]:
    for i in range(index - 1, -1, -1):
        if lines[i].strip():
            return i
    return None


def _block_start(lines: Sequence[str], index: int) -> int:
    """Move a boundary back over the field lines before it and an opening separator or heading."""
    start = index
    previous = _previous_nonblank(lines, start)
    while previous is not None and _KEY_LINE.match(lines[previous]):
        start = previous
        previous = _previous_nonblank(lines, start)
    if previous is not None and (_SEPARATOR_LINE.match(lines[previous]) or _HEADING.match(lines[previous])):
        start = previous
    return start


def _slice_blocks(lines: Sequence[str], starts: Sequence[int]) -> List[str]:
    starts = sorted(set(starts))
    blocks = []
    for i, start in enumerate(starts):
        end = starts[i + 1] if i + 1 < len(starts) else len(lines)
        block = "\n".join(lines[start:end]).strip()
        if block:
            blocks.append(block)
    return blocks


def split_on_delimiter(text: str) -> Optional[List[str]]:
    chunks = [chunk.strip() for chunk in text.split(RULE_DELIMITER)]
    return [chunk for chunk in chunks if chunk]


def split_before_description(text: str) -> Optional[List[str]]:
    """Split before each ``description:`` field, when there are several front-matter sections."""
    lines = text.splitlines()
    if sum(1 for line in lines if _SEPARATOR_LINE.match(line)) <= 2:
        return None
    starts = []
    for i, line in enumerate(lines):
        match = _KEY_LINE.match(line)
        if match and match.group(1).lower() == "description":
            starts.append(_block_start(lines, i))
    return _slice_blocks(lines, starts) if starts else None


def split_before_any_field(text: str) -> Optional[List[str]]:
    """Split before each group of description/globs/alwaysApply fields."""
    lines = text.splitlines()
    # Every line of a field group maps to the same start
    starts = [_block_start(lines, i) for i, line in enumerate(lines) if _KEY_LINE.match(line)]
    return _slice_blocks(lines, starts) if starts else None


SplitStrategy = Callable[[str], Optional[List[str]]]

SPLIT_STRATEGIES: List[SplitStrategy] = [
    split_on_delimiter,
    split_before_description,
    split_before_any_field,
]


def split_blocks(text: str) -> List[str]:
    """Split free text into rule blocks using the first strategy that finds several."""
    for strategy in SPLIT_STRATEGIES:
        blocks = strategy(text)
        if blocks is not None and len(blocks) > 1:
            logger.debug("Split model output into %d blocks with %s", len(blocks), strategy.__name__)
            return blocks
    return split_on_delimiter(text) or []


# ---------------------------------------------------------------------------
# Free-text block parsing
# ---------------------------------------------------------------------------

def _leading_fields(block: str) -> Tuple[str, str]:
    """Split a block that opens with bare field lines into (fields, body)."""
    lines = block.splitlines()
    end = 0
    while end < len(lines) and (_KEY_LINE.match(lines[end]) or _LIST_ITEM.match(lines[end])):
        end += 1
    front_matter = "\n".join(lines[:end])
    if end < len(lines) and _SEPARATOR_LINE.match(lines[end]):
        end += 1
    return front_matter, "\n".join(lines[end:])


def parse_front_matter_block(block: str) -> Optional[RuleRecord]:
    """Parse a block with a ``---`` bounded front-matter section.

    Returns:
        The record, or None if the block has no front matter or no body
    """
    stripped = block.lstrip()
    if _KEY_LINE.match(stripped):
        # Separators missing: fields run up to the first other line
        front_matter, body = _leading_fields(stripped)
    else:
        match = _FRONT_MATTER.search(block)
        if not match:
            return None
        front_matter, body = match.group(1), match.group(2) or ""
    if not any(_KEY_LINE.match(line) for line in front_matter.splitlines()):
        return None

    title, body = split_title(body.strip())
    if not body:
        return None

    return RuleRecord(
        title=title,
        description=parse_description(_front_matter_value(front_matter, "description")),
        glob_patterns=parse_globs(_front_matter_value(front_matter, "globs")),
        always_apply=parse_always_apply(_front_matter_value(front_matter, "alwaysapply")),
        body=body,
    )


def _inline_value(pattern: re.Pattern, block: str) -> Optional[str]:
    match = pattern.search(block)
    if match and match.group(1):
        return match.group(1)
    return None


def parse_inline_block(block: str) -> Optional[RuleRecord]:
    """Parse the ``**Description:**`` / ``**Globs:**`` / ``**Rule:**`` markdown dialect."""
    marker = _INLINE_RULE_MARKER.search(block)
    if marker:
        body = block[marker.end():]
    else:
        heading = _HEADING.search(block)
        if not heading:
            return None
        body = block[heading.start():]

    for pattern in (_INLINE_DESCRIPTION, _INLINE_GLOBS, _INLINE_ALWAYS_APPLY):
        body = pattern.sub("", body)

    title, body = split_title(body.strip(), fallback_text=block)
    if not body:
        return None

    return RuleRecord(
        title=title,
        description=parse_description(_inline_value(_INLINE_DESCRIPTION, block)),
        glob_patterns=parse_globs(_inline_value(_INLINE_GLOBS, block)),
        always_apply=parse_always_apply(_inline_value(_INLINE_ALWAYS_APPLY, block)),
        body=body,
    )


BLOCK_PARSERS = [parse_front_matter_block, parse_inline_block]


def parse_block(block: str) -> Optional[RuleRecord]:
    for parser in BLOCK_PARSERS:
        record = parser(block)
        if record is not None:
            return record
    return None


def parse_free_text(text: str) -> RuleSet:
    rules = []
    for block in split_blocks(text):
        try:
            record = parse_block(block)
        except Exception as e:
            logger.warning("Discarding rule block that failed to parse: %s", e)
            continue
        if record is None:
            logger.debug("Discarding rule block with no extractable body")
            continue
        rules.append(record)
    return rules


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def _coerce_text(raw_output: Union[RawModelOutput, str, bytes, None]) -> str:
    if raw_output is None:
        return ""
    if isinstance(raw_output, RawModelOutput):
        raw_output = raw_output.text
    if isinstance(raw_output, (bytes, bytearray)):
        return bytes(raw_output).decode("utf-8", errors="replace")
    return str(raw_output)


def extract(raw_output: Union[RawModelOutput, str, bytes, None], max_rules: int) -> RuleSet:
    """Convert raw model output into at most ``max_rules`` rule records.

    The cap is a hard safety valve against models ignoring count
    instructions. Order is preserved; nothing is re-ranked.

    Args:
        raw_output: Model output, structured payload or free text
        max_rules: Maximum number of records to return

    Returns:
        Rule records in the order the model produced them (possibly empty)
    """
    text = _coerce_text(raw_output).replace("\r\n", "\n")
    if max_rules <= 0 or not text.strip():
        return []

    rules = parse_structured(text)
    if rules is None:
        rules = parse_free_text(text)

    if len(rules) > max_rules:
        logger.info("Model produced %d rules, keeping the first %d", len(rules), max_rules)
    return rules[:max_rules]
