"""
Diff annotation for gitsite pages.

Turns raw unified diff and diff-stat text into escaped HTML with
anchors and links:
- each file header gets an anchor named after its post-change path
- hunk headers link their old/new line numbers to the numbered file
  pages of the parent and the commit
- diff-stat change counts link to the matching file header

Links are prefixed with the page's relative base path.
"""

import re
from typing import List, Optional

from markupsafe import Markup, escape

from .domain import Diff, Overview

# Start of a git file header; the paths follow
DIFF_PREFIX = "diff --git a/"

# "@@ -3,2 +3,3 @@ context" with optional counts
HUNK_HEADER = re.compile(r'^@@ -(?P<old>\d+)(?P<old_count>,\d+)? \+(?P<new>\d+)(?P<new_count>,\d+)? @@')

# Extended header keywords between "diff" and the first hunk
KEYWORD = re.compile(r'^(deleted|index|new|old|rename|similarity|dissimilarity|copy|Binary)\b')

# Change count column of a stat line: " 12 +++--" or " Bin 0 -> 10 bytes"
STAT_COUNT = re.compile(r'^(\s*)(\d+|Bin)(.*)$')

# dir/{old => new}/file in rename stat lines
RENAME_BRACES = re.compile(r'\{([^{}]*?) => ([^{}]*?)\}')


def diff_page_name(parent: str) -> str:
    """File name of the diff page against ``parent`` inside a commit directory."""
    return f"diff-to-{parent}.html"


def object_page_path(commit: str, path: str) -> str:
    """Base-relative location of a file's numbered rendering at ``commit``."""
    return f"commit/{commit}/{path}.html"


def stat_path(name: str) -> str:
    """Post-change path of a diff-stat file column, resolving renames."""
    name = RENAME_BRACES.sub(lambda m: m.group(2), name.strip())
    if " => " in name:
        name = name.split(" => ")[-1]
    while "//" in name:
        name = name.replace("//", "/")
    return name.strip()


def diff_target(line: str) -> Optional[str]:
    """
    Post-change path named by a ``diff --git a/P b/P`` line.

    Both halves are the same path unless the file was renamed, so the
    symmetric split is tried first. Renames fall back to the last ``b/``.
    """
    if not line.startswith(DIFF_PREFIX):
        return None
    rest = line[len(DIFF_PREFIX):]
    half = (len(rest) - 3) // 2
    if len(rest) % 2 == 1 and rest[half:half + 3] == " b/" and rest[:half] == rest[half + 3:]:
        return rest[:half]
    _, sep, target = rest.rpartition(" b/")
    return target if sep else None


def _file_marker(line: str, side: str) -> Optional[str]:
    """Path named by a ``---``/``+++`` line, None for /dev/null or quoted paths."""
    prefix = f"{side} {'a' if side == '---' else 'b'}/"
    if line.startswith(prefix):
        return line[len(prefix):]
    return None


def annotate_diff(diff: Diff, base: str = "") -> Markup:
    """Escape and annotate a unified diff body; links are prefixed with ``base``."""
    if not diff.body:
        return Markup("")

    results: List[str] = []
    old_path: Optional[str] = None
    new_path: Optional[str] = None
    in_header = False

    for raw in diff.body.rstrip("\n").split("\n"):
        line = str(escape(raw))

        if raw.startswith("diff "):
            in_header = True
            old_path = new_path = None
            target = diff_target(raw)
            if target:
                target = str(escape(target))
                head = line[:len(line) - len(target)]
                line = f'{head}<a id="{target}" href="#{target}">{target}</a>'
            results.append(f'<strong class="diff-file">{line}</strong>')
            continue

        if in_header and raw.startswith("--- "):
            old_path = _file_marker(raw, "---")
            results.append(f'<mark class="diff-old">{line}</mark>')
            continue

        if in_header and raw.startswith("+++ "):
            new_path = _file_marker(raw, "+++")
            results.append(f'<mark class="diff-new">{line}</mark>')
            continue

        if raw.startswith("@@"):
            in_header = False
            results.append(f'<span class="diff-hunk">{_link_hunk(line, diff, base, old_path, new_path)}</span>')
            continue

        if in_header:
            line = KEYWORD.sub(r'<em>\1</em>', line)
            results.append(f'<span class="diff-meta">{line}</span>')
        elif raw.startswith("-"):
            results.append(f'<del>{line}</del>')
        elif raw.startswith("+"):
            results.append(f'<ins>{line}</ins>')
        else:
            results.append(line)

    return Markup("\n".join(results))


def _link_hunk(line: str, diff: Diff, base: str, old_path: Optional[str], new_path: Optional[str]) -> str:
    match = HUNK_HEADER.match(line)
    if not match:
        return line

    old = f"-{match.group('old')}{match.group('old_count') or ''}"
    new = f"+{match.group('new')}{match.group('new_count') or ''}"

    if old_path is not None:
        href = base + object_page_path(diff.parent, str(escape(old_path)))
        old = f'<a href="{href}#L{match.group("old")}">-{match.group("old")}</a>{match.group("old_count") or ""}'
    if new_path is not None:
        href = base + object_page_path(diff.commit.hash, str(escape(new_path)))
        new = f'<a href="{href}#L{match.group("new")}">+{match.group("new")}</a>{match.group("new_count") or ""}'

    return f"@@ {old} {new} @@{line[match.end():]}"


def annotate_stat(overview: Overview, base: str = "") -> Markup:
    """
    Escape a diff-stat and link each file's change count to its diff.

    The trailing summary line ("N files changed ...") is left as is.
    """
    if not overview.body:
        return Markup("")

    results: List[str] = []
    page = f"{base}commit/{overview.hash}/{diff_page_name(overview.parent)}"

    for raw in overview.body.split("\n"):
        name, bar, stats = raw.partition("|")
        match = STAT_COUNT.match(stats) if bar else None
        if not match:
            results.append(str(escape(raw)))
            continue

        target = escape(stat_path(name))
        count = f'<a href="{page}#{target}">{escape(match.group(2))}</a>'
        results.append(f"{escape(name)}{bar}{match.group(1)}{count}{escape(match.group(3))}")

    return Markup("\n".join(results))


def line_numbers(body: str) -> List[int]:
    """1-based line numbers of ``body``, counting an unterminated last line."""
    if not body:
        return []
    count = body.count("\n")
    if not body.endswith("\n"):
        count += 1
    return list(range(1, count + 1))
