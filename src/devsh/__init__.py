"""
devsh - Run a shell in a development container

This package starts an isolated docker container with the project mounted
inside, opens a shell in it and tears it down again, driven by a layered
YAML configuration (global defaults, per-project .devsh file and CLI flags).
"""

__version__ = "0.1.0"

from .cli import cli

__all__ = ["cli"]
