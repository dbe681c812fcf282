"""
History domain objects for gitsite.

Immutable records describing what was extracted from a working copy:
branches, commits, file trees, diffs and diff-stat overviews. They carry
no I/O and are safe to share between worker threads.
"""

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import PurePosixPath
from typing import Dict, Any, Optional, Tuple


@dataclass(frozen=True)
class Author:
    """Commit author identity."""
    name: str
    email: str

    def __str__(self) -> str:
        return f"{self.name} <{self.email}>"

    def to_dict(self) -> Dict[str, Any]:
        return {'name': self.name, 'email': self.email}


@dataclass(frozen=True)
class TreeObject:
    """
    A file at a commit.

    Two objects with the same hash denote byte-identical content,
    whatever their path or commit.
    """
    hash: str
    path: str

    @property
    def dir(self) -> str:
        """Two-level store location, e.g. ``ab/abcdef...``."""
        return f"{self.hash[:2]}/{self.hash}"

    @property
    def ext(self) -> str:
        return PurePosixPath(self.path).suffix

    def to_dict(self) -> Dict[str, Any]:
        return {'hash': self.hash, 'path': self.path}


@dataclass(frozen=True)
class Overview:
    """Diff-stat summary between a commit and one of its parents."""
    body: str
    hash: str
    parent: str

    def to_dict(self) -> Dict[str, Any]:
        return {'body': self.body, 'hash': self.hash, 'parent': self.parent}


@dataclass(frozen=True)
class Commit:
    """
    A single commit with everything needed to render it.

    Identity is the full hash; two records with the same hash are
    interchangeable.
    """
    hash: str
    abbr: str
    parents: Tuple[str, ...]
    author: Author
    date: datetime
    subject: str
    body: str = ""
    tree: Tuple[TreeObject, ...] = ()
    history: Tuple[Overview, ...] = ()

    @property
    def is_merge(self) -> bool:
        return len(self.parents) > 1

    @property
    def is_root(self) -> bool:
        return not self.parents

    def overview(self, parent: str) -> Optional[Overview]:
        """Diff-stat against ``parent`` if one was resolved."""
        for item in self.history:
            if item.parent == parent:
                return item
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'hash': self.hash,
            'abbr': self.abbr,
            'parents': list(self.parents),
            'author': self.author.to_dict(),
            'date': self.date.isoformat(),
            'subject': self.subject,
            'body': self.body,
            'tree': [obj.to_dict() for obj in self.tree],
            'history': [item.to_dict() for item in self.history],
        }


@dataclass(frozen=True)
class Diff:
    """Unified diff body between a commit and one named parent."""
    body: str
    commit: Commit
    parent: str


@dataclass(frozen=True)
class GraphRow:
    """One row of ``git log --graph`` output: glyphs plus an optional commit hash."""
    glyphs: str
    hash: Optional[str] = None


@dataclass(frozen=True)
class Branch:
    """A branch and its commits, most recent first."""
    name: str
    commits: Tuple[Commit, ...] = ()
    graph: Tuple[GraphRow, ...] = ()

    def __str__(self) -> str:
        return self.name

    @property
    def head(self) -> Optional[Commit]:
        """Latest commit, or None for a branch with no parsable commits."""
        return self.commits[0] if self.commits else None

    @property
    def depth(self) -> int:
        """Number of path components of the branch page below the output root."""
        return 1 + len(PurePosixPath(self.name).parts)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'commits': [c.to_dict() for c in self.commits],
        }


@dataclass(frozen=True)
class ObjectView:
    """Data behind an object (file) page."""
    hash: str
    path: str
    binary: bool = False
    body: str = ""
    lines: Tuple[int, ...] = ()

    @property
    def dir(self) -> str:
        return f"{self.hash[:2]}/{self.hash}"


@dataclass(frozen=True)
class Project:
    """The logical project being rendered."""
    name: str
    source: str
    output: str
    url: str = ""
    branches: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def link(self) -> str:
        return self.url or self.source
