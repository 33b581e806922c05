"""Infrastructure components for the mock interview engine.

This module contains low-level technical components (audio devices,
speech services, the LLM client and session storage) that the interview
package builds on.
"""

# LLM infrastructure
from .llm import VertexRestClient

# Session hand-off
from .data import SessionStore

__all__ = [
    "VertexRestClient",
    "SessionStore",
]
