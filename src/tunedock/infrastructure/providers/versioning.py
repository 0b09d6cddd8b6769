"""Version parsing, ordering and compatibility ranges for providers.

Provider authors write versions/ranges the way the wider plugin ecosystem does
("1.2.0", "^1.0.0", "~1.2", ">=1.0.0 <2.0.0"). We normalize those onto
`packaging` (PEP 440) so comparison and range checks have one implementation.
"""

import re

from packaging.specifiers import InvalidSpecifier, SpecifierSet
from packaging.version import InvalidVersion, Version

ZERO_VERSION = Version("0.0.0")

_OPERATOR_RE = re.compile(r"^(===|==|!=|~=|>=|<=|>|<)")
_PARTIAL_RE = re.compile(r"^v?(\d+)(?:\.(\d+|x|\*))?(?:\.(\d+|x|\*))?(.*)$")


def parse_version(value: str | None) -> Version:
    """Parse a provider version; missing/garbage sorts as 0.0.0."""
    if not value:
        return ZERO_VERSION
    try:
        return Version(str(value).strip().lstrip("v"))
    except InvalidVersion:
        return ZERO_VERSION


def is_newer(candidate: str | None, than: str | None) -> bool:
    """True if `candidate` is strictly newer than `than`."""
    return parse_version(candidate) > parse_version(than)


def _caret(major: int, minor: int, patch: int) -> str:
    if major > 0:
        upper = f"{major + 1}.0.0"
    elif minor > 0:
        upper = f"0.{minor + 1}.0"
    else:
        upper = f"0.0.{patch + 1}"
    return f">={major}.{minor}.{patch},<{upper}"


def _tilde(major: int, minor: int | None, patch: int) -> str:
    if minor is None:
        return f">={major}.0.0,<{major + 1}.0.0"
    return f">={major}.{minor}.{patch},<{major}.{minor + 1}.0"


def _translate_clause(clause: str) -> str | None:
    """Translate one range clause to PEP 440. None means "any version"."""
    clause = clause.strip()
    if clause in ("", "*", "x", "latest"):
        return None

    if clause.startswith("^") or (clause.startswith("~") and not clause.startswith("~=")):
        operator, rest = clause[0], clause[1:].strip()
        match = _PARTIAL_RE.match(rest)
        if not match:
            raise InvalidSpecifier(clause)
        major = int(match.group(1))
        minor = int(match.group(2)) if match.group(2) and match.group(2).isdigit() else None
        patch = int(match.group(3)) if match.group(3) and match.group(3).isdigit() else 0
        if operator == "^":
            return _caret(major, minor or 0, patch)
        return _tilde(major, minor, patch)

    operator_match = _OPERATOR_RE.match(clause)
    if operator_match:
        operator = operator_match.group(1)
        rest = clause[len(operator):].strip().lstrip("v")
        return f"{operator}{rest}"

    # Bare version or wildcard: "1.2.3" exact, "1.x" / "1.2.*" prefix
    match = _PARTIAL_RE.match(clause)
    if not match:
        raise InvalidSpecifier(clause)
    major, minor, patch, tail = match.groups()
    if minor is None or minor in ("x", "*"):
        return f"=={major}.*"
    if patch is None or patch in ("x", "*"):
        return f"=={major}.{minor}.*"
    return f"=={major}.{minor}.{patch}{tail}"


def to_specifier(range_text: str) -> SpecifierSet:
    """Convert a compatibility range to a SpecifierSet.

    Accepts PEP 440 (">=1.0,<2") as well as caret/tilde/space-separated ranges.

    Raises:
        InvalidSpecifier: If the range can't be understood
    """
    # ">= 1.0" → ">=1.0" so the clause split below doesn't separate operator and version
    text = re.sub(r"(===|==|!=|~=|>=|<=|>|<|\^|~)\s+", r"\1", range_text.strip())
    if "||" in text:
        # Alternatives can't be expressed as one SpecifierSet, see satisfies()
        raise InvalidSpecifier(text)
    clauses = [c for c in re.split(r"[,\s]+(?=[<>=!~^\dv*x])", text) if c.strip()]
    translated = [t for t in (_translate_clause(c) for c in clauses) if t]
    return SpecifierSet(",".join(translated))


def satisfies(version: str, range_text: str | None) -> bool:
    """True if `version` lies within `range_text` (None/empty = always)."""
    if range_text is None or not str(range_text).strip():
        return True
    try:
        parsed = Version(version)
        return any(
            to_specifier(alternative).contains(parsed, prereleases=True)
            for alternative in str(range_text).split("||")
        )
    except (InvalidSpecifier, InvalidVersion):
        return False
