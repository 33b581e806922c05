"""
Data management infrastructure: question bank loading and finished-session hand-off.
"""

from .sessions import SessionStore

__all__ = ['SessionStore']
