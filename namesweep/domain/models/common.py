"""Defines common Value Objects used across different domain contexts.

These objects represent simple values such as keys, failure reasons and
output paths, ensuring consistency between the engine and its collaborators.
"""

from typing import NewType, Tuple, TypedDict

# === Core Value Objects ===

# Using NewType for semantic clarity, although they are strings at runtime.
Key = NewType("Key", str)                    # A validated key (e.g., a username)
FailureReason = NewType("FailureReason", str)  # Last error description for a key

# A shard is an ordered, immutable slice of the sorted key list
Shard = Tuple[Key, ...]


# --- Structured Data ---
class BackoffPolicy(TypedDict):
    """Value Object representing retry backoff configuration."""
    max_retries: int
    rate_limit_base: float
    base: float
    jitter: float
    max_delay: float
