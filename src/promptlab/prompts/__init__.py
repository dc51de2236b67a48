"""Prompt management: versioned, content-addressed prompt history."""

from .store import PromptVersion, PromptVersionStore, content_hash

__all__ = [
    "PromptVersion",
    "PromptVersionStore",
    "content_hash",
]
