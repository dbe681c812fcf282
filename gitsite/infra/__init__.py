"""
Infrastructure layer for gitsite.

Contains abstractions for external systems:
- GitClient: Git command execution (the only source of history data)
- FileStore: JSON settings persistence
- ObjectStore: Content-addressable artifact storage

These provide clean interfaces that can be faked for testing.
"""

from .git_client import GitClient, GitCommandError
from .file_store import FileStore, LinkOutcome, ObjectStore, link_or_copy, write_atomic

__all__ = [
    'GitClient',
    'GitCommandError',
    'FileStore',
    'LinkOutcome',
    'ObjectStore',
    'link_or_copy',
    'write_atomic',
]
