#!/usr/bin/env python3
"""
Setup script for the rulegen CLI tool.
"""

from setuptools import setup, find_packages
from pathlib import Path
import sys
import os

# Add parent directory to path to import version
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))
from version import VERSION

# Read the contents of README file
this_directory = Path(__file__).parent
long_description = ""
readme_path = this_directory / "README.md"
if readme_path.exists():
    long_description = readme_path.read_text(encoding="utf-8")

setup(
    name="rulegen",
    version=VERSION,
    author="rulegen contributors",
    description="Generate AI coding rules (Cursor, Claude, Copilot, Windsurf) from a codebase with Google Gemini",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    py_modules=["version"],
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Topic :: Software Development :: Tools",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Programming Language :: Python :: 3.13",
    ],
    python_requires=">=3.11",
    install_requires=[
        "click>=8.1.0",
        "pathspec>=0.11.0",
        "pyyaml>=6.0",
        "python-dotenv>=1.0.0",
        "google-genai>=1.0.0",
        "httpx>=0.27.0",
        "pydantic>=2.0.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "black>=22.0.0",
            "flake8>=4.0.0",
            "mypy>=1.0.0",
        ],
        "test": [
            "pytest>=7.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "rulegen=rulegen.cli:main",
        ],
    },
    include_package_data=True,
    zip_safe=False,
)
