"""
Shared utilities for QUIVER.

Common functionality used across contexts:
- Logging (Tier 1 loguru setup, Tier 2 JSON Lines events)
- Configuration loading
- Timestamps
- LLM provider abstraction
"""

from quiver.utils.timestamp import now, now_exact, today

__all__ = ["now", "now_exact", "today"]
