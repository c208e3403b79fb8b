#!/usr/bin/env python3
"""
Tests for rule extraction from model output.
"""

import json
import random

import pytest

from rulegen.extractor import (
    RULE_DELIMITER,
    extract,
    parse_globs,
    parse_structured,
    split_blocks,
)
from rulegen.models import (
    DEFAULT_DESCRIPTION,
    DEFAULT_GLOBS,
    DEFAULT_TITLE,
    RawModelOutput,
    RuleRecord,
    UsageCounters,
    render_rule,
)


def rule(n, always_apply=False):
    return RuleRecord(
        title=f"Rule Number {n}",
        description=f"Description for rule {n}",
        glob_patterns=(f"src/area{n}/**", "lib/**/*.ts"),
        always_apply=always_apply,
        body=f"Import helpers from src/area{n}/index.ts.\n\n- Keep handlers thin\n- Validate input first",
    )


def delimited(rules):
    return f"\n{RULE_DELIMITER}\n".join(render_rule(r) for r in rules)


class TestTotality:
    """extract never raises, whatever it is given."""

    @pytest.mark.parametrize("raw", [
        "",
        "   \n\t  ",
        None,
        b"\xff\xfe\x00garbage",
        "[{\"title\": \"Truncated\", \"desc",
        "---\ndescription: only front matter\n---\n",
        "===RULE===\n===RULE===\n===RULE===",
        "{\"not\": \"an array\"}",
        "[[[[[[[[[[[[[[[[[[[[",
        "globs: [unterminated\n# Title\nbody",
    ])
    def test_degenerate_inputs(self, raw):
        result = extract(raw, 8)
        assert isinstance(result, list)

    def test_random_bytes(self):
        rng = random.Random(42)
        for _ in range(100):
            raw = bytes(rng.randrange(256) for _ in range(rng.randint(0, 400)))
            assert isinstance(extract(raw, 8), list)

    def test_random_fragments(self):
        """Shuffled pieces of valid output still never raise."""
        rng = random.Random(7)
        pieces = delimited([rule(1), rule(2)]).split("\n")
        for _ in range(100):
            rng.shuffle(pieces)
            assert isinstance(extract("\n".join(pieces), 8), list)

    def test_empty_input_yields_empty(self):
        assert extract("", 8) == []

    def test_zero_cap(self):
        assert extract(delimited([rule(1)]), 0) == []


class TestFreeTextCanonical:
    """Delimiter-separated front-matter blocks."""

    def test_round_trip(self):
        """Rendered rules come back unchanged."""
        rules = [rule(1), rule(2, always_apply=True), rule(3)]
        assert extract(delimited(rules), 8) == rules

    def test_cap_keeps_first_in_order(self):
        """Twenty rules with a cap of eight keeps the first eight."""
        rules = [rule(n) for n in range(20)]
        result = extract(delimited(rules), 8)
        assert result == rules[:8]

    def test_accepts_raw_model_output(self):
        raw = RawModelOutput(text=delimited([rule(1)]), usage=UsageCounters(prompt_tokens=10))
        assert extract(raw, 8) == [rule(1)]

    def test_crlf_line_endings(self):
        text = delimited([rule(1), rule(2)]).replace("\n", "\r\n")
        assert extract(text, 8) == [rule(1), rule(2)]

    def test_text_before_front_matter(self):
        """Chatter before the first separator is ignored."""
        text = "Here are the rules I found:\n\n" + delimited([rule(1), rule(2)])
        assert extract(text, 8) == [rule(1), rule(2)]

    def test_missing_fields_get_defaults(self):
        text = "---\nalwaysApply: true\n---\n\n# Use The Logger\n\nImport log from src/log.ts."
        [result] = extract(text, 8)
        assert result.description == DEFAULT_DESCRIPTION
        assert result.glob_patterns == DEFAULT_GLOBS
        assert result.always_apply is True
        assert result.title == "Use The Logger"
        assert result.body == "Import log from src/log.ts."

    def test_missing_heading_gets_default_title(self):
        text = "---\ndescription: Untitled\n---\n\nJust instructions."
        [result] = extract(text, 8)
        assert result.title == DEFAULT_TITLE
        assert result.slug == "generated-rule"

    def test_rule_prefix_stripped_from_title(self):
        text = "---\ndescription: d\n---\n\n## Rule: Barrel Exports\n\nExport from index.ts."
        [result] = extract(text, 8)
        assert result.title == "Barrel Exports"

    @pytest.mark.parametrize("title", [
        "__init__ exports",
        "`config.ts` loading",
        "Use *args sparingly",
        "**Bold** and **more**",
    ])
    def test_markup_in_title_round_trips(self, title):
        """Underscores, backticks and asterisks inside a title are kept."""
        record = RuleRecord(title, "d", ("src/**",), False, "Body text.")
        assert extract(delimited([record, rule(1)]), 8) == [record, rule(1)]

    @pytest.mark.parametrize("heading,expected", [
        ("**Bold Title**", "Bold Title"),
        ("__Underlined__", "Underlined"),
        ("`snake_case`", "snake_case"),
        ("*Rule: Emphasised*", "Emphasised"),
    ])
    def test_wrapping_emphasis_unwrapped(self, heading, expected):
        text = f"---\ndescription: d\n---\n\n# {heading}\n\nBody."
        [result] = extract(text, 8)
        assert result.title == expected

    def test_block_without_body_is_discarded(self):
        text = delimited([rule(1)]) + f"\n{RULE_DELIMITER}\n---\ndescription: empty\n---\n\n# Heading Only\n"
        assert extract(text, 8) == [rule(1)]

    def test_block_without_front_matter_or_heading_is_discarded(self):
        text = delimited([rule(1)]) + f"\n{RULE_DELIMITER}\nI hope these rules help!"
        assert extract(text, 8) == [rule(1)]


class TestGlobParsing:
    """Glob values appear in several shapes."""

    @pytest.mark.parametrize("value,expected", [
        ('["src/**/*.ts", "lib/**"]', ("src/**/*.ts", "lib/**")),
        ("['src/**']", ("src/**",)),
        ("src/**/*.ts, lib/**", ("src/**/*.ts", "lib/**")),
        ("**/*.ts", ("**/*.ts",)),
        ("[**/*.ts, src/**]", ("**/*.ts", "src/**")),
        ("[src/**/*.{ts,tsx}]", ("src/**/*.{ts,tsx}",)),
        ("src/**/*.{ts,tsx}", ("src/**/*.{ts,tsx}",)),
        ("src/**/*.{ts,tsx}, lib/**", ("src/**/*.{ts,tsx}", "lib/**")),
        ('["src/**/*.{ts,tsx}", "lib/**"]', ("src/**/*.{ts,tsx}", "lib/**")),
        ("**/*.{js,jsx}, **/*.{ts,tsx}", ("**/*.{js,jsx}", "**/*.{ts,tsx}")),
        ("", DEFAULT_GLOBS),
        ("[]", DEFAULT_GLOBS),
        (None, DEFAULT_GLOBS),
    ])
    def test_shapes(self, value, expected):
        assert parse_globs(value) == expected

    def test_yaml_block_list(self):
        text = "---\ndescription: d\nglobs:\n  - src/**\n  - lib/**\n---\n\n# T\n\nbody"
        [result] = extract(text, 8)
        assert result.glob_patterns == ("src/**", "lib/**")

    def test_brace_glob_survives_round_trip(self):
        record = RuleRecord("Components", "d", ("src/**/*.{ts,tsx}", "lib/**"), False, "Body.")
        assert extract(delimited([record, rule(1)]), 8) == [record, rule(1)]


class TestRecoveryStrategies:
    """Splitting falls back when the delimiter is missing."""

    def test_split_before_description(self):
        """Front-matter blocks with no delimiter are split before each description."""
        text = render_rule(rule(1)) + "\n" + render_rule(rule(2, always_apply=True))
        assert RULE_DELIMITER not in text
        assert extract(text, 8) == [rule(1), rule(2, always_apply=True)]

    def test_split_before_description_with_fields_reordered(self):
        text = (
            "---\nglobs: [\"a/**\"]\ndescription: First\nalwaysApply: false\n---\n\n# A\n\nBody A\n\n"
            "---\nglobs: [\"b/**\"]\ndescription: Second\nalwaysApply: true\n---\n\n# B\n\nBody B\n"
        )
        result = extract(text, 8)
        assert [(r.title, r.description, r.glob_patterns, r.always_apply, r.body) for r in result] == [
            ("A", "First", ("a/**",), False, "Body A"),
            ("B", "Second", ("b/**",), True, "Body B"),
        ]

    def test_split_before_any_field(self):
        """Bare field lines with no separators at all."""
        text = (
            "description: First thing\nglobs: src/**\n# First\nDo the first thing.\n\n"
            "description: Second thing\nglobs: lib/**\nalwaysApply: true\n# Second\nDo the second thing.\n"
        )
        blocks = split_blocks(text)
        assert len(blocks) == 2

        first, second = extract(text, 8)
        assert (first.title, first.description, first.glob_patterns) == ("First", "First thing", ("src/**",))
        assert first.body == "Do the first thing."
        assert (second.title, second.always_apply, second.body) == ("Second", True, "Do the second thing.")

    def test_delimiter_takes_precedence(self):
        text = delimited([rule(1), rule(2)])
        assert len(split_blocks(text)) == 2


class TestInlineDialect:
    """The bold-label markdown convention."""

    def test_single_inline_rule(self):
        text = (
            "### Rule: API Error Handling\n"
            "**Description:** Consistent error shape\n"
            "**Globs:** src/api/**\n"
            "**Rule:** Always return { error } objects from handlers in src/api.\n"
        )
        [result] = extract(text, 8)
        assert result.title == "API Error Handling"
        assert result.description == "Consistent error shape"
        assert result.glob_patterns == ("src/api/**",)
        assert result.always_apply is False
        assert result.body == "Always return { error } objects from handlers in src/api."

    def test_several_inline_rules_without_delimiter(self):
        text = (
            "### Rule: API Errors\n"
            "**Description:** Consistent error shape\n"
            "**Globs:** src/api/**\n"
            "**Rule:** Always return errors as objects.\n"
            "\n"
            "### Rule: Logging\n"
            "**Description**: Use the shared logger\n"
            "**alwaysApply:** true\n"
            "**Rule:** Import log from src/log.ts.\n"
        )
        first, second = extract(text, 8)
        assert (first.title, first.body) == ("API Errors", "Always return errors as objects.")
        assert (second.title, second.description) == ("Logging", "Use the shared logger")
        assert second.always_apply is True
        assert second.glob_patterns == DEFAULT_GLOBS

    def test_body_from_first_heading_without_rule_marker(self):
        text = (
            "**Description:** Components are function components\n"
            "**Globs:** src/components/**\n"
            "\n"
            "## Function Components\n"
            "\n"
            "Write components as arrow functions with typed props.\n"
        )
        [result] = extract(text, 8)
        assert result.title == "Function Components"
        assert result.description == "Components are function components"
        assert result.body == "Write components as arrow functions with typed props."


class TestStructuredMode:
    """JSON array payloads."""

    def payload(self, count=2):
        return json.dumps([
            {
                "title": f"Rule {n}",
                "description": f"Desc {n}",
                "globs": [f"src/{n}/**"],
                "alwaysApply": n == 0,
                "body": f"Do thing {n}.",
            }
            for n in range(count)
        ])

    def test_valid_payload(self):
        result = extract(self.payload(), 8)
        assert result == [
            RuleRecord("Rule 0", "Desc 0", ("src/0/**",), True, "Do thing 0."),
            RuleRecord("Rule 1", "Desc 1", ("src/1/**",), False, "Do thing 1."),
        ]

    def test_code_fenced_payload(self):
        text = "```json\n" + self.payload(1) + "\n```"
        assert len(extract(text, 8)) == 1

    def test_cap_applies(self):
        assert len(extract(self.payload(20), 8)) == 8

    def test_empty_globs_default(self):
        text = json.dumps([{"title": "T", "description": "D", "globs": [], "alwaysApply": False, "body": "B"}])
        [result] = extract(text, 8)
        assert result.glob_patterns == DEFAULT_GLOBS

    def test_duplicate_heading_removed_from_body(self):
        text = json.dumps([{"title": "T", "description": "D", "globs": ["x/**"],
                            "alwaysApply": False, "body": "# T\n\nDo it."}])
        [result] = extract(text, 8)
        assert result.body == "Do it."

    def test_title_markup_kept(self):
        """Only a leading "Rule:" is removed from a structured title."""
        text = json.dumps([
            {"title": "__init__ exports", "description": "D", "globs": ["x/**"],
             "alwaysApply": False, "body": "# __init__ exports\n\nRe-export the public API."},
            {"title": "Rule: **Bold** names", "description": "D", "globs": ["x/**"],
             "alwaysApply": False, "body": "Do it."},
        ])
        first, second = extract(text, 8)
        assert (first.title, first.body) == ("__init__ exports", "Re-export the public API.")
        assert second.title == "**Bold** names"

    def test_wrong_types_fall_back_to_free_text(self):
        """A string where a boolean belongs invalidates the payload."""
        text = json.dumps([{"title": "T", "description": "D", "globs": ["x"],
                            "alwaysApply": "yes", "body": "B"}])
        assert parse_structured(text) is None
        assert extract(text, 8) == []

    def test_missing_field_falls_back(self):
        text = json.dumps([{"title": "T", "description": "D", "globs": ["x"], "body": "B"}])
        assert parse_structured(text) is None

    def test_non_array_is_not_structured(self):
        assert parse_structured(json.dumps({"title": "T"})) is None
        assert parse_structured(delimited([rule(1)])) is None
