"""
File store infrastructure for gitsite.

Provides:
- Atomic writes (write to temp, then rename), so a reader or a second
  writer never observes a truncated file
- FileStore: JSON settings persistence
- ObjectStore: content-addressable artifacts keyed by content hash,
  referenced from commit directories by hard link
"""

import errno
import json
import os
import shutil
import tempfile
import threading
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Tuple, Union
import logging

logger = logging.getLogger(__name__)

# Link errors meaning "this filesystem can't hard link here", answered with a copy.
COPY_FALLBACK_ERRNOS = {errno.EXDEV, errno.EPERM, errno.EMLINK, errno.ENOTSUP, errno.EOPNOTSUPP}


def write_atomic(path: Union[str, Path], data: bytes) -> None:
    """Write ``data`` to ``path`` via a temp file in the same directory and rename."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    fd, temp_path = tempfile.mkstemp(
        dir=path.parent,
        prefix=f".{path.name}.",
        suffix=".tmp"
    )

    try:
        with os.fdopen(fd, 'wb') as f:
            f.write(data)

        # Atomic rename
        os.replace(temp_path, path)

    except Exception:
        # Clean up temp file on error
        try:
            os.unlink(temp_path)
        except OSError:
            pass
        raise


class LinkOutcome(Enum):
    """How a commit-local reference to an artifact was satisfied."""
    LINKED = "linked"
    COPIED = "copied"
    EXISTS = "exists"


def link_or_copy(source: Union[str, Path], destination: Union[str, Path]) -> LinkOutcome:
    """
    Reference ``source`` from ``destination`` without duplicating content.

    Hard links first; falls back to a copy where the filesystem refuses
    hard links. An existing destination counts as done.

    Raises:
        OSError: Any other link failure
    """
    source = Path(source)
    destination = Path(destination)
    destination.parent.mkdir(parents=True, exist_ok=True)

    try:
        os.link(source, destination)
        return LinkOutcome.LINKED
    except FileExistsError:
        return LinkOutcome.EXISTS
    except OSError as e:
        if e.errno not in COPY_FALLBACK_ERRNOS:
            raise
        logger.debug(f"Hard link refused ({e}), copying {source} to {destination}")

    fd, temp_path = tempfile.mkstemp(dir=destination.parent, prefix=f".{destination.name}.")
    os.close(fd)
    try:
        shutil.copyfile(source, temp_path)
        os.replace(temp_path, destination)
    except Exception:
        try:
            os.unlink(temp_path)
        except OSError:
            pass
        raise
    return LinkOutcome.COPIED


class FileStore:
    """
    JSON file persistence with atomic writes.

    Example:
        store = FileStore(Path("site/.gitsite.json"))
        store.write({"name": "My Project"})
        data = store.read()
    """

    def __init__(self, path: Path):
        self.path = Path(path).expanduser().resolve()
        self._lock = threading.Lock()
        self._cache: Optional[Dict[str, Any]] = None

    def read(self) -> Dict[str, Any]:
        """
        Read entire store.

        Returns:
            Dictionary with all stored data ({} when missing or unreadable)
        """
        with self._lock:
            if self._cache is not None:
                return self._cache.copy()

            try:
                if self.path.exists():
                    with open(self.path, 'r', encoding='utf-8') as f:
                        self._cache = json.load(f)
                        return self._cache.copy()
            except (json.JSONDecodeError, IOError) as e:
                logger.warning(f"Error reading {self.path}: {e}")

            self._cache = {}
            return {}

    def write(self, data: Dict[str, Any]) -> None:
        """Write entire store."""
        with self._lock:
            payload = json.dumps(data, indent=2, ensure_ascii=False) + '\n'
            write_atomic(self.path, payload.encode('utf-8'))
            self._cache = data.copy()


class ObjectStore:
    """
    Content-addressable store of rendered file artifacts.

    Each content hash owns two files under a two-level fan-out:
    ``<root>/<hh>/<hash>`` (raw bytes) and ``<root>/<hh>/<hash>.html``
    (the rendering). The rendering is written last, so its presence
    marks a complete entry.

    Example:
        store = ObjectStore(Path("site/object"))
        store.ensure_rendered(sha, lambda: (raw, html))
        store.link(sha, Path("site/commit/abc/README.md.html"))
    """

    def __init__(self, root: Path):
        self.root = Path(root)
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}

    def _lock_for(self, content_hash: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(content_hash)
            if lock is None:
                lock = self._locks[content_hash] = threading.Lock()
            return lock

    def blob_path(self, content_hash: str) -> Path:
        return self.root / content_hash[:2] / content_hash

    def artifact_path(self, content_hash: str) -> Path:
        return self.root / content_hash[:2] / f"{content_hash}.html"

    def exists(self, content_hash: str) -> bool:
        return self.artifact_path(content_hash).exists()

    def ensure_rendered(
        self,
        content_hash: str,
        render: Callable[[], Tuple[bytes, bytes]]
    ) -> bool:
        """
        Store the artifact for ``content_hash`` unless it already exists.

        Args:
            content_hash: Content identity
            render: Produces ``(raw_bytes, rendered_page)``; only called
                when the entry is missing

        Returns:
            True if written now, False if it already existed

        Raises:
            OSError: On write failure; whatever ``render`` raises
        """
        with self._lock_for(content_hash):
            if self.exists(content_hash):
                return False

            raw, page = render()
            write_atomic(self.blob_path(content_hash), raw)
            write_atomic(self.artifact_path(content_hash), page)
            return True

    def link(self, content_hash: str, destination: Path) -> LinkOutcome:
        """Reference the rendering of ``content_hash`` from ``destination``."""
        return link_or_copy(self.artifact_path(content_hash), destination)
