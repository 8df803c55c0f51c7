"""Version algebra over loosely structured tag strings.

Tags are treated as dot-separated numeric components with an optional
leading ``v``.  Missing or non-numeric components count as ``0``; this makes
:func:`compare` a total order only over dotted numeric strings.  Tags such as
``"latest"`` or ``"v1.2.3-rc.1"`` compare by whatever numeric parts survive,
which is a known limitation rather than something to paper over here.
"""

from __future__ import annotations

import re

_INT_RE = re.compile(r"[+-]?[0-9]+")
_HEX_DIGITS = frozenset("0123456789abcdefABCDEF")
_COMMIT_HASH_LEN = 40


def normalize(version: str) -> str:
    """Strip surrounding whitespace and one leading ``v``/``V``."""
    version = version.strip()
    if version[:1] in ("v", "V"):
        version = version[1:]
    return version


def _to_int(part: str) -> int:
    # Anything that is not a plain decimal integer counts as 0.
    if _INT_RE.fullmatch(part):
        return int(part)
    return 0


def _components(version: str) -> list[int]:
    return [_to_int(p) for p in normalize(version).split(".")]


def extract_major(version: str) -> int:
    """``"v1.2.3"`` -> ``1``."""
    return _components(version)[0]


def extract_major_minor(version: str) -> tuple[int, int]:
    """``"v1.2.3"`` -> ``(1, 2)``; a lone major gives ``(major, 0)``."""
    parts = _components(version)
    if len(parts) >= 2:
        return parts[0], parts[1]
    return parts[0], 0


def compare(v1: str, v2: str) -> int:
    """Return -1, 0 or 1 as *v1* is older than, equal to or newer than *v2*."""
    a = _components(v1)
    b = _components(v2)
    for i in range(max(len(a), len(b))):
        x = a[i] if i < len(a) else 0
        y = b[i] if i < len(b) else 0
        if x < y:
            return -1
        if x > y:
            return 1
    return 0


def is_commit_hash(ref: str) -> bool:
    """True for a full 40-character hex SHA."""
    return len(ref) == _COMMIT_HASH_LEN and all(c in _HEX_DIGITS for c in ref)


def is_major_version_only(ref: str) -> bool:
    """True for refs like ``"v3"`` or ``"3"``."""
    ref = normalize(ref)
    return ref != "" and all("0" <= c <= "9" for c in ref)


def matches_constraint(tag_version: str, constraint: str) -> bool:
    """Check *tag_version* against a ``^`` / ``~`` constraint.

    - ``""`` matches everything.
    - ``^1.x.y`` matches any major >= 1; ``^N.x.y`` matches major ``N`` only.
    - ``~N.M.x`` matches major ``N`` and minor ``M``.
    - Anything else matches nothing.
    """
    if constraint == "":
        return True

    if constraint.startswith("^"):
        pattern_major = extract_major(constraint[1:])
        tag_major = extract_major(tag_version)
        if pattern_major == 1:
            return tag_major >= 1
        return tag_major == pattern_major

    if constraint.startswith("~"):
        return extract_major_minor(tag_version) == extract_major_minor(constraint[1:])

    return False


def to_major_tag(version: str) -> str:
    """``"v5.2.0"`` and ``"5.2.0"`` both become ``"v5"``."""
    return f"v{extract_major(version)}"
