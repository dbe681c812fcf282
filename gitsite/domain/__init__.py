"""
Domain layer for gitsite.

Contains pure domain objects with no I/O or side effects:
- Branch, Commit, TreeObject: the extracted history
- Diff, Overview: per-parent diff body and diff-stat
- TaskResult, GenerationSummary: typed outcome of generation work

These objects are immutable where possible and safe to share
between worker threads.
"""

from .history import (
    Author,
    Branch,
    Commit,
    Diff,
    GraphRow,
    ObjectView,
    Overview,
    Project,
    TreeObject,
)
from .operation import TaskKind, TaskStatus, TaskResult, GenerationSummary

__all__ = [
    'Author',
    'Branch',
    'Commit',
    'Diff',
    'GraphRow',
    'ObjectView',
    'Overview',
    'Project',
    'TreeObject',
    'TaskKind',
    'TaskStatus',
    'TaskResult',
    'GenerationSummary',
]
