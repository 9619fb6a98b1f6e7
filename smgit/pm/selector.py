"""
Resolution of version selectors against repository tags.

A selector such as ``1``, ``v1``, ``1.x``, ``^1.2`` or ``~1.2.3`` resolves to the
latest release tag sharing the selector's major version. PEP 440 specifier sets
(``>=1.2,<2``) are matched exactly. Tags may carry a ``v`` prefix and may be
namespaced under a path (``lib/v1.2.3``).
"""

import logging
import re
from typing import Iterable, Optional, Tuple

from packaging.specifiers import InvalidSpecifier, SpecifierSet
from packaging.version import InvalidVersion, Version

from ..errors import RefResolutionError


logger = logging.getLogger('smgit.pm.selector')

_MAJOR_SELECTOR = re.compile(r"^[\^~=v]*\s*(\d+)(?:\.(?:\d+|[xX*]))*$")
_SPECIFIER = re.compile(r"^\s*(?:===|==|!=|~=|<=|>=|<|>)")


def parse_tag_version(tag: str, prefix: Optional[str] = None) -> Optional[Version]:
    """Version carried by ``tag``, or None when the tag is not a release tag."""
    if prefix:
        namespace = prefix.rstrip("/") + "/"
        if not tag.startswith(namespace):
            return None
        tag = tag[len(namespace):]
    if tag[:1] in ("v", "V"):
        tag = tag[1:]
    try:
        return Version(tag)
    except InvalidVersion:
        return None


def is_version_selector(selector: str) -> bool:
    return bool(_MAJOR_SELECTOR.match(selector.strip()) or _SPECIFIER.match(selector))


def resolve_version_selector(
    selector: str,
    tags: Iterable[str],
    prefix: Optional[str] = None
) -> str:
    """
    Latest tag matching ``selector``.

    Raises:
        RefResolutionError: selector is malformed or no tag matches
    """
    candidates = []
    for tag in tags:
        version = parse_tag_version(tag, prefix)
        if version is not None:
            candidates.append((version, tag))

    if _SPECIFIER.match(selector):
        try:
            specifier = SpecifierSet(selector)
        except InvalidSpecifier:
            raise RefResolutionError(f"Invalid version selector '{selector}'")
        matching = [(v, t) for v, t in candidates if v in specifier]
    else:
        m = _MAJOR_SELECTOR.match(selector.strip())
        if not m:
            raise RefResolutionError(f"'{selector}' is neither a ref nor a version selector")
        major = int(m.group(1))
        matching = [(v, t) for v, t in candidates if v.major == major and not v.is_prerelease]

    best = _latest(matching)
    if best is None:
        raise RefResolutionError(f"No tag found matching version selector '{selector}'")

    logger.debug(f"Resolved version selector '{selector}' to tag '{best}'")
    return best


def _latest(matching) -> Optional[str]:
    best: Optional[Tuple[Version, str]] = None
    for version, tag in matching:
        if best is None or version > best[0]:
            best = (version, tag)
    return best[1] if best else None
