#!/usr/bin/env python3
"""
Project scanner.

Walks a project tree and produces the candidate files that may be sent to
the model: source files plus well-known config files, minus anything in
skipped directories, ignored by ``.gitignore``, empty, too large or not
valid UTF-8.
"""

import os
import logging
from pathlib import Path
from typing import List, Optional

import pathspec

from .models import CandidateFile

logger = logging.getLogger(__name__)

# Max file size to read (100KB)
MAX_FILE_SIZE = 100 * 1024

SOURCE_EXTENSIONS = {
    '.js', '.jsx', '.ts', '.tsx', '.mjs', '.cjs',
    '.py', '.pyw',
    '.go',
    '.rs',
    '.rb',
    '.java', '.kt', '.kts',
    '.cs',
    '.php',
    '.swift',
    '.c', '.h', '.cpp', '.hpp', '.cc',
    '.vue', '.svelte', '.astro',
    '.css', '.scss', '.less',
    '.html', '.htm',
    '.sql',
    '.sh', '.bash', '.zsh',
    '.yaml', '.yml',
    '.toml',
    '.graphql', '.gql',
    '.proto',
}

# Config files reveal project structure; matched by name or relative path
CONFIG_FILES = {
    'package.json', 'tsconfig.json', 'tsconfig.base.json',
    '.eslintrc.json', '.eslintrc.js', '.eslintrc.cjs', 'eslint.config.js', 'eslint.config.mjs',
    '.prettierrc', '.prettierrc.json', 'prettier.config.js', 'biome.json',
    'vite.config.ts', 'vite.config.js',
    'next.config.js', 'next.config.mjs', 'next.config.ts', 'nuxt.config.ts',
    'svelte.config.js', 'astro.config.mjs',
    'tailwind.config.js', 'tailwind.config.ts', 'postcss.config.js',
    'webpack.config.js', 'rollup.config.js',
    'vitest.config.ts', 'vitest.config.js', 'jest.config.js', 'jest.config.ts',
    'playwright.config.ts',
    'docker-compose.yml', 'docker-compose.yaml', 'Dockerfile', '.dockerignore',
    'Makefile',
    'Cargo.toml', 'go.mod', 'go.sum',
    'requirements.txt', 'pyproject.toml', 'setup.py', 'setup.cfg',
    'Gemfile', 'pom.xml', 'build.gradle', 'build.gradle.kts',
    '.env.example',
    'prisma/schema.prisma', 'drizzle.config.ts',
}

SKIP_DIRS = {
    'node_modules', '.git', '.svn', '.hg',
    'dist', 'build', 'out',
    '.next', '.nuxt', '.output', '.svelte-kit',
    '__pycache__', '.pytest_cache', '.mypy_cache', '.tox',
    'venv', '.venv', 'env',
    'target', 'vendor', 'coverage', '.nyc_output',
    '.turbo', '.vercel', '.netlify',
    'tmp', 'temp', '.cache', '.parcel-cache',
    'logs',
}


def load_gitignore(project_path: Path) -> Optional[pathspec.PathSpec]:
    """Load ``.gitignore`` patterns from the project root, if present."""
    gitignore_path = project_path / '.gitignore'
    if not gitignore_path.exists():
        return None

    patterns = []
    with open(gitignore_path, encoding='utf-8', errors='replace') as f:
        for line in f:
            line = line.strip()
            if not line or line.startswith('#'):
                continue
            # Negation patterns are not supported
            if line.startswith('!'):
                continue
            patterns.append(line)
    return pathspec.PathSpec.from_lines('gitwildmatch', patterns)


def is_config_file(name: str, relative_path: str) -> bool:
    return name in CONFIG_FILES or relative_path in CONFIG_FILES


class ProjectScanner:
    """Collects candidate files from a project directory."""

    def __init__(self, project_path: str, max_file_size: int = MAX_FILE_SIZE):
        self.project_path = Path(project_path).resolve()
        self.max_file_size = max_file_size
        self.ignore_spec = load_gitignore(self.project_path)

        # Skipped files by reason, for reporting
        self.skipped_large: List[str] = []
        self.skipped_unreadable: List[str] = []

    def is_ignored(self, relative_path: str, is_dir: bool = False) -> bool:
        if self.ignore_spec is None:
            return False
        if is_dir:
            relative_path = relative_path.rstrip('/') + '/'
        return self.ignore_spec.match_file(relative_path)

    def scan(self) -> List[CandidateFile]:
        """Walk the project and return candidates in discovery order."""
        results: List[CandidateFile] = []

        for root, dirs, files in os.walk(self.project_path):
            root_path = Path(root)
            rel_root = root_path.relative_to(self.project_path)

            dirs[:] = sorted(
                d for d in dirs
                if d not in SKIP_DIRS
                and not self.is_ignored((rel_root / d).as_posix(), is_dir=True)
            )

            for name in sorted(files):
                rel_path = (rel_root / name).as_posix()
                if self.is_ignored(rel_path):
                    continue

                candidate = self._load_candidate(root_path / name, name, rel_path)
                if candidate is not None:
                    results.append(candidate)

        logger.debug("Scanned %s: %d candidate files", self.project_path, len(results))
        return results

    def _load_candidate(self, full_path: Path, name: str, rel_path: str) -> Optional[CandidateFile]:
        ext = full_path.suffix.lower()
        is_config = is_config_file(name, rel_path)
        if not is_config and ext not in SOURCE_EXTENSIONS:
            return None

        try:
            size = full_path.stat().st_size
            if size == 0:
                return None
            if size > self.max_file_size:
                self.skipped_large.append(rel_path)
                return None
            content = full_path.read_text(encoding='utf-8')
        except (OSError, UnicodeDecodeError) as e:
            logger.debug("Skipping unreadable file %s: %s", rel_path, e)
            self.skipped_unreadable.append(rel_path)
            return None

        return CandidateFile(
            path=str(full_path),
            relative_path=rel_path,
            content=content,
            size_bytes=size,
            is_config_file=is_config,
            extension=ext,
        )
