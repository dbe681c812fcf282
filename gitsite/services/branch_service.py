"""
Branch resolution for gitsite.

Turns the working copy's branch listing into the ordered set of branch
names a run works on.
"""

from typing import List, Optional, Sequence
import logging

from ..infra import GitClient

logger = logging.getLogger(__name__)

SYMBOLIC_HEAD = "HEAD"


def parse_branch_listing(output: str) -> List[str]:
    """
    Bare branch names from ``git branch --all --format=%(refname)``.

    ``refs/heads/<name>`` and ``refs/remotes/<remote>/<name>`` both map
    to ``<name>``; the symbolic HEAD entry and detached-HEAD lines are
    dropped; duplicates keep their first position.
    """
    names: List[str] = []
    seen = set()

    for line in output.splitlines():
        ref = line.strip()
        if ref.startswith("refs/heads/"):
            name = ref[len("refs/heads/"):]
        elif ref.startswith("refs/remotes/"):
            _, _, name = ref[len("refs/remotes/"):].partition("/")
        else:
            continue

        if not name or name == SYMBOLIC_HEAD:
            continue
        if name not in seen:
            seen.add(name)
            names.append(name)

    return names


def filter_branches(discovered: Sequence[str], whitelist: Optional[Sequence[str]]) -> List[str]:
    """
    Apply the caller's whitelist.

    With a whitelist the result follows whitelist order and silently
    drops unknown names; without one every discovered branch is kept in
    discovery order.
    """
    if not whitelist:
        return list(discovered)

    known = set(discovered)
    result: List[str] = []
    for name in whitelist:
        if name in known and name not in result:
            result.append(name)
        elif name not in known:
            logger.debug(f"Ignoring unknown branch: {name}")
    return result


class BranchResolver:
    """
    Lists and filters branches of a working copy.

    Example:
        resolver = BranchResolver(GitClient())
        names = resolver.resolve("/tmp/work", ["main", "develop"])
    """

    def __init__(self, git_client: Optional[GitClient] = None):
        self.git = git_client or GitClient()

    def resolve(self, path: str, whitelist: Optional[Sequence[str]] = None) -> List[str]:
        """
        Ordered branch names for ``path``.

        Raises:
            GitCommandError: If the branch listing itself fails
        """
        discovered = parse_branch_listing(self.git.list_branches(path))
        logger.debug(f"Discovered branches: {', '.join(discovered)}")
        return filter_branches(discovered, whitelist)
