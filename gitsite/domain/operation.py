"""
Task result domain objects for gitsite.

Every unit of generation work (a branch, a page, an object) reports a
typed result so the orchestrator can summarize a run without ever
aborting it.
"""

from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Any, List, Optional


class TaskStatus(Enum):
    """Outcome of an individual task."""
    SUCCESS = "success"
    SKIPPED = "skipped"
    FAILED = "failed"


class TaskKind(Enum):
    """Granularity of a unit of work."""
    BRANCH = "branch"
    BRANCH_PAGE = "branch_page"
    COMMIT_PAGE = "commit_page"
    DIFF_PAGE = "diff_page"
    OBJECT = "object"
    INDEX_PAGE = "index_page"


@dataclass
class TaskResult:
    """
    Details of a single task.

    ``key`` identifies the item (branch name, commit hash,
    ``commit:parent`` pair, or ``commit:path`` for objects).
    """
    kind: TaskKind
    key: str
    status: TaskStatus
    message: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, kind: TaskKind, key: str, message: Optional[str] = None) -> 'TaskResult':
        return cls(kind, key, TaskStatus.SUCCESS, message=message)

    @classmethod
    def skipped(cls, kind: TaskKind, key: str, message: Optional[str] = None) -> 'TaskResult':
        return cls(kind, key, TaskStatus.SKIPPED, message=message)

    @classmethod
    def failed(cls, kind: TaskKind, key: str, error: str) -> 'TaskResult':
        return cls(kind, key, TaskStatus.FAILED, error=error)

    def to_dict(self) -> Dict[str, Any]:
        result = {
            'kind': self.kind.value,
            'key': self.key,
            'status': self.status.value,
        }
        if self.message:
            result['message'] = self.message
        if self.error:
            result['error'] = self.error
        return result


@dataclass
class GenerationSummary:
    """
    Summary of one generation run.

    Collects statistics and details from every dispatched task.
    """
    total: int = 0
    successful: int = 0
    skipped: int = 0
    failed: int = 0
    details: List[TaskResult] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        """True if no failures occurred."""
        return self.failed == 0

    def add_detail(self, detail: TaskResult) -> None:
        """Add a task result and update counts."""
        self.details.append(detail)
        self.total += 1

        if detail.status == TaskStatus.SUCCESS:
            self.successful += 1
        elif detail.status == TaskStatus.SKIPPED:
            self.skipped += 1
        elif detail.status == TaskStatus.FAILED:
            self.failed += 1
            if detail.error:
                self.errors.append(f"{detail.kind.value} {detail.key}: {detail.error}")

    def count(self, kind: TaskKind, status: Optional[TaskStatus] = None) -> int:
        """Number of results of ``kind``, optionally restricted to ``status``."""
        return sum(
            1 for d in self.details
            if d.kind == kind and (status is None or d.status == status)
        )

    def by_kind(self) -> Dict[TaskKind, Counter]:
        """Status counters grouped by task kind."""
        grouped: Dict[TaskKind, Counter] = {}
        for detail in self.details:
            grouped.setdefault(detail.kind, Counter())[detail.status] += 1
        return grouped

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            'type': 'summary',
            'total': self.total,
            'successful': self.successful,
            'skipped': self.skipped,
            'failed': self.failed,
            'errors': self.errors,
        }
