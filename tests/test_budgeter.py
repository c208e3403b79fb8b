#!/usr/bin/env python3
"""
Tests for the token budget manager.
"""

import random

from rulegen.budgeter import select, sort_candidates, token_ceiling
from rulegen.classifier import classify
from rulegen.models import CandidateFile


def candidate(relative_path, size_bytes, is_config_file=False):
    return CandidateFile(
        path=f"/project/{relative_path}",
        relative_path=relative_path,
        content="x" * size_bytes,
        size_bytes=size_bytes,
        is_config_file=is_config_file,
        extension="." + relative_path.rsplit(".", 1)[-1],
    )


class TestTokenCeiling:
    """Test budget arithmetic."""

    def test_default_budget(self):
        """Context limit minus prompt reserve minus response allowance."""
        assert token_ceiling(900_000, 10_000, 16_384) == 873_616

    def test_never_negative(self):
        assert token_ceiling(1_000, 10_000, 16_384) == 0


class TestSelect:
    """Test greedy selection under file-count and token limits."""

    def test_empty_candidates(self):
        """No candidates yields an empty selection with the full budget left."""
        result = select([], max_files=50, ceiling=1000)
        assert result.files == ()
        assert result.remaining_budget == 1000

    def test_max_files_zero(self):
        """A zero file cap selects nothing."""
        result = select([candidate("a.ts", 10)], max_files=0, ceiling=1000)
        assert len(result) == 0
        assert result.remaining_budget == 1000

    def test_config_first_then_largest(self):
        """A 2000-byte config and three 500-byte generic files with a cap of 2."""
        config = candidate("package.json", 2000, is_config_file=True)
        generic = [candidate("src/a.ts", 500), candidate("src/b.ts", 500), candidate("src/c.ts", 500)]

        result = select(generic + [config], max_files=2, ceiling=10_000)

        assert [f.relative_path for f in result] == ["package.json", "src/a.ts"]
        assert result.total_tokens == 500 + 125
        assert result.remaining_budget == 10_000 - 625

    def test_larger_files_first_within_class(self):
        files = [candidate("src/small.ts", 100), candidate("src/big.ts", 900), candidate("src/mid.ts", 400)]
        result = select(files, max_files=10, ceiling=10_000)
        assert [f.relative_path for f in result] == ["src/big.ts", "src/mid.ts", "src/small.ts"]

    def test_oversized_file_is_skipped_not_terminal(self):
        """A file that does not fit is passed over and a smaller one still fits."""
        files = [
            candidate("src/index.ts", 400),      # 100 tokens, entry point
            candidate("src/models/user.ts", 800),  # 200 tokens, does not fit after index
            candidate("src/lib/tiny.ts", 40),    # 10 tokens
        ]
        result = select(files, max_files=10, ceiling=150)

        assert [f.relative_path for f in result] == ["src/index.ts", "src/lib/tiny.ts"]
        assert result.remaining_budget == 40

    def test_single_file_larger_than_budget(self):
        result = select([candidate("src/huge.ts", 4000)], max_files=10, ceiling=100)
        assert len(result) == 0
        assert result.remaining_budget == 100

    def test_budget_invariant(self):
        """Selection never exceeds either limit and keeps priority order."""
        rng = random.Random(1234)
        paths = ["package.json", "src/index.ts", "src/models/m{}.ts", "src/routes/r{}.ts",
                 "src/utils/u{}.ts", "src/components/c{}.tsx", "src/lib/g{}.ts", "tests/t{}.test.ts"]

        for _ in range(50):
            files = []
            for i in range(rng.randint(0, 40)):
                path = rng.choice(paths).format(i)
                files.append(candidate(path, rng.randint(1, 5000), is_config_file=path == "package.json"))
            max_files = rng.randint(0, 20)
            ceiling = rng.randint(0, 20_000)

            result = select(files, max_files=max_files, ceiling=ceiling)

            assert len(result) <= max_files
            assert result.total_tokens <= ceiling
            assert result.remaining_budget == ceiling - result.total_tokens
            classes = [classify(f) for f in result]
            assert classes == sorted(classes)

    def test_does_not_mutate_input(self):
        files = [candidate("src/b.ts", 10), candidate("src/a.ts", 20)]
        snapshot = list(files)
        select(files, max_files=10, ceiling=1000)
        assert files == snapshot


class TestSortCandidates:
    """Test priority-major, size-minor ordering."""

    def test_equal_keys_keep_discovery_order(self):
        files = [candidate("src/x.ts", 100), candidate("src/y.ts", 100), candidate("src/z.ts", 100)]
        assert [f.relative_path for f in sort_candidates(files)] == ["src/x.ts", "src/y.ts", "src/z.ts"]

    def test_tests_sort_last(self):
        files = [candidate("tests/big.test.ts", 5000), candidate("src/lib/small.ts", 10)]
        assert [f.relative_path for f in sort_candidates(files)] == ["src/lib/small.ts", "tests/big.test.ts"]
