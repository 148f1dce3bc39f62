"""Source acquisition."""

from __future__ import annotations

from libprovision.fetch.git import fetch_source
from libprovision.policy import MutableRefWarning

__all__ = ["MutableRefWarning", "fetch_source"]
