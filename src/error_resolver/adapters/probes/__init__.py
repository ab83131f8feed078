"""Validation probe implementations."""

from .command import CommandProbe, checks_from_config

__all__ = ["CommandProbe", "checks_from_config"]
