"""Build configuration and compilation."""

from __future__ import annotations

from libprovision.builders.base import Builder, CommandResult, run_tool
from libprovision.builders.cmake import CMakeBuilder

__all__ = ["Builder", "CMakeBuilder", "CommandResult", "run_tool"]
