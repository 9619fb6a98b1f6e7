"""Parsing of ``git remote show`` output."""

import re
from typing import Optional

from .repository_info import BranchTracking, RemoteDescriptor


_REMOTE_NAME = re.compile(r"^\s*\* remote (\S+)")
_FETCH_URL = re.compile(r"^\s*Fetch URL:\s*(.*)$")
_PUSH_URL = re.compile(r"^\s*Push\s+URL:\s*(.*)$")
_HEAD_BRANCH = re.compile(r"^\s*HEAD branch\b[^:]*:\s*(.*)$")
_REMOTE_BRANCHES = re.compile(r"^\s*Remote branch(?:es)?\b[^:]*:(.*)$")
_PULL_BRANCHES = re.compile(r"^\s*Local branch(?:es)? configured for 'git pull'[^:]*:(.*)$")
_PUSH_REFS = re.compile(r"^\s*Local refs? configured for 'git push'[^:]*:(.*)$")
_PULL_ENTRY = re.compile(r"^(\S+)\s+(?:merges with|rebases onto|rebases interactively onto) remote (\S+)")
_ANNOTATION = re.compile(r"\([^)]*\)")

# Section names
_NONE = None
_REMOTE = "remote_branches"
_PULL = "pull"
_IGNORED = "ignored"


def _inline_item(rest: str) -> Optional[str]:
    """Return an item written on the header line itself, if any."""
    rest = _ANNOTATION.sub("", rest).strip()
    return rest or None


def parse_remote_show(output: str, name: Optional[str] = None) -> RemoteDescriptor:
    """
    Parse the output of ``git remote show [-n] <name>``.

    The output is a set of labelled sections (fetch URL, push URL, remote branch
    list, local branches configured for pull). Sections may come in any order; a
    section ends at the next header or at the end of the output.
    """
    fetch_url = None
    push_url = None
    branches = {}
    remote_branches = []
    section = _NONE

    def add_item(item: str):
        if section == _REMOTE:
            if " stale " in f" {item} ":
                return
            remote_branches.append(item.split()[0])
        elif section == _PULL:
            m = _PULL_ENTRY.match(item)
            if m:
                branches[m.group(1)] = BranchTracking(tracking=True, remote=m.group(2))

    for line in output.splitlines():
        if not line.strip():
            continue

        m = _REMOTE_NAME.match(line)
        if m:
            name = name or m.group(1)
            section = _NONE
            continue
        m = _FETCH_URL.match(line)
        if m:
            fetch_url = m.group(1).strip()
            section = _NONE
            continue
        m = _PUSH_URL.match(line)
        if m:
            push_url = m.group(1).strip()
            section = _NONE
            continue
        m = _REMOTE_BRANCHES.match(line)
        if m:
            section = _REMOTE
            item = _inline_item(m.group(1))
            if item:
                add_item(item)
            continue
        m = _PULL_BRANCHES.match(line)
        if m:
            section = _PULL
            item = _inline_item(m.group(1))
            if item:
                add_item(item)
            continue
        if _PUSH_REFS.match(line) or _HEAD_BRANCH.match(line):
            section = _IGNORED
            continue

        add_item(line.strip())

    if fetch_url is None and push_url is None:
        raise ValueError(f"No URLs found in remote listing for '{name}'")

    # Both URLs are always present once a remote has been queried
    fetch_url = fetch_url if fetch_url is not None else push_url
    push_url = push_url if push_url is not None else fetch_url

    return RemoteDescriptor(
        name=name or "",
        fetch_url=fetch_url,
        push_url=push_url,
        branches=branches,
        remote_branches=remote_branches,
    )
