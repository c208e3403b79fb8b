"""Version information for rulegen."""

VERSION = "0.1.0"
