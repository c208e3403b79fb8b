#!/usr/bin/env python3
"""
Allow running rulegen as ``python -m rulegen``.
"""

from .cli import main

if __name__ == "__main__":
    main()
