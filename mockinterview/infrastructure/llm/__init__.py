"""LLM client infrastructure."""

from .client import VertexRestClient, RateLimitError

__all__ = ["VertexRestClient", "RateLimitError"]
