"""
Git client infrastructure for gitsite.

Provides a clean abstraction over git command execution.
All git operations go through this client, making them:
- Easy to fake for testing
- Consistent in error handling
- Isolated from parsing and rendering logic

The client never interprets git's output; it only builds arguments
and returns raw text (or bytes for blobs).
"""

import subprocess
from typing import List, Optional, Union
import logging

logger = logging.getLogger(__name__)


class GitCommandError(Exception):
    """A git command exited non-zero, timed out or could not be started."""

    def __init__(self, args: List[str], returncode: int, stderr: str = ""):
        self.command = args
        self.returncode = returncode
        self.stderr = stderr.strip()
        detail = f": {self.stderr}" if self.stderr else ""
        super().__init__(f"'{' '.join(args)}' failed with code {returncode}{detail}")


class GitClient:
    """
    Abstraction over git commands.

    Every method takes the working copy path first and either returns
    the command's output or raises GitCommandError.

    Example:
        client = GitClient()
        client.clone("https://host/project.git", "/tmp/work")
        for line in client.list_branches("/tmp/work").splitlines():
            print(line)
    """

    def __init__(self, timeout: Optional[int] = None, remote: str = "origin"):
        """
        Initialize GitClient.

        Args:
            timeout: Per-command timeout in seconds (default: no limit)
            remote: Name of the upstream remote in the working copy
        """
        self.timeout = timeout
        self.remote = remote

    def _run(
        self,
        args: List[str],
        cwd: Optional[str] = None,
        text: bool = True
    ) -> Union[str, bytes]:
        """
        Run a git command.

        Args:
            args: Arguments following ``git``
            cwd: Working directory
            text: Decode output as UTF-8 (invalid bytes are replaced)

        Returns:
            Raw stdout

        Raises:
            GitCommandError: On non-zero exit, timeout or spawn failure
        """
        cmd = ["git", *args]
        try:
            result = subprocess.run(
                cmd,
                cwd=cwd,
                capture_output=True,
                timeout=self.timeout
            )
        except subprocess.TimeoutExpired:
            logger.warning(f"Git command timed out: {' '.join(cmd)}")
            raise GitCommandError(cmd, -1, "timed out")
        except OSError as e:
            raise GitCommandError(cmd, -1, str(e))

        if result.returncode != 0:
            stderr = result.stderr.decode("utf-8", errors="replace")
            raise GitCommandError(cmd, result.returncode, stderr)

        if text:
            return result.stdout.decode("utf-8", errors="replace")
        return result.stdout

    def remote_ref(self, branch: str) -> str:
        """Fully qualified remote-tracking ref for ``branch``."""
        return f"refs/remotes/{self.remote}/{branch}"

    def clone(self, source: str, path: str) -> None:
        """Clone ``source`` (URL or local path) into ``path``."""
        self._run(["clone", "--quiet", source, path])

    def fetch_branch(self, path: str, branch: str) -> None:
        """Force-refresh the remote-tracking ref of ``branch`` from upstream."""
        refspec = f"+refs/heads/{branch}:{self.remote_ref(branch)}"
        self._run(["fetch", "--force", "--quiet", self.remote, refspec], cwd=path)

    def checkout(self, path: str, ref: str) -> None:
        """Detach the working copy at ``ref``."""
        self._run(["checkout", "--quiet", "--detach", ref], cwd=path)

    def list_branches(self, path: str) -> str:
        """Local and remote-tracking branches, one full refname per line."""
        return self._run(["branch", "--all", "--format=%(refname)"], cwd=path)

    def log(self, path: str, ref: str, fmt: str) -> str:
        """Commit log of ``ref`` with a custom ``--format``."""
        return self._run(["log", f"--format={fmt}", ref, "--"], cwd=path)

    def log_graph(self, path: str, ref: str) -> str:
        """Commit graph of ``ref``: glyphs followed by the full hash."""
        return self._run(["log", "--graph", "--format=%H", ref, "--"], cwd=path)

    def show_body(self, path: str, commit: str) -> str:
        """Full, multi-line commit message."""
        return self._run(["show", "--no-patch", "--format=%B", commit], cwd=path)

    def diff_stat(self, path: str, parent: str, commit: str) -> str:
        """Statistics-only diff between ``parent`` and ``commit``."""
        return self._run(
            ["diff", "--stat=1000,1000", "--stat-graph-width=40", f"{parent}..{commit}"],
            cwd=path
        )

    def diff_patch(self, path: str, parent: str, commit: str) -> str:
        """Unified diff between ``parent`` and ``commit``."""
        return self._run(["diff", "-p", f"{parent}..{commit}"], cwd=path)

    def ls_tree(self, path: str, commit: str) -> str:
        """Recursive, NUL-terminated tree listing of ``commit``."""
        return self._run(["ls-tree", "-r", "-z", commit], cwd=path)

    def cat_blob(self, path: str, obj: str) -> bytes:
        """Raw bytes of blob ``obj``."""
        return self._run(["cat-file", "blob", obj], cwd=path, text=False)

    def show_blob(self, path: str, obj: str) -> str:
        """Blob ``obj`` as text, the way ``git show`` prints it."""
        return self._run(["show", "--no-notes", obj], cwd=path)
