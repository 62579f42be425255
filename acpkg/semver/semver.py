# acpkg/semver/semver.py
from __future__ import annotations

import re
from dataclasses import dataclass
from functools import total_ordering
from typing import Literal

__all__ = [
    "STRICT_VERSION_RE",
    "Version",
    "parseVersion",
    "parseStrictVersion",
    "isStrictVersion",
    "Comparator",
    "Requirement",
    "parseRequirement",
    "versionSatisfies",
    "compareVersions",
]



SEMVER_PATTERN_RE = re.compile(
    r"^v?(?P<major>0|[1-9]\d*)"
    r"\.(?P<minor>0|[1-9]\d*)"
    r"\.(?P<patch>0|[1-9]\d*)"
    r"(?:-(?P<prerelease>(?:0|[1-9]\d*|[0-9A-Za-z-]*[A-Za-z-][0-9A-Za-z-]*)"
    r"(?:\.(?:0|[1-9]\d*|[0-9A-Za-z-]*[A-Za-z-][0-9A-Za-z-]*))*))?"
    r"(?:\+(?P<build>[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?$"
)

# Package and entry versions: exactly X.Y.Z
STRICT_VERSION_RE = re.compile(r"^\d+\.\d+\.\d+$")

Operator = Literal["<", "<=", ">", ">=", "==", "!="]



@total_ordering
@dataclass(frozen=True)
class Version:
    major: int
    minor: int
    patch: int
    prerelease: tuple[str, ...] = ()
    build: tuple[str, ...] = ()

    def __str__(self) -> str:
        base = f"{self.major}.{self.minor}.{self.patch}"
        prerelease = f"-{'.'.join(self.prerelease)}" if self.prerelease else ""
        build = f"+{'.'.join(self.build)}" if self.build else ""
        return f"{base}{prerelease}{build}"

    def _prereleaseCmpKey(self) -> tuple:
        # Numeric identifiers sort before alphanumeric ones
        parts: list[tuple[int, int | str]] = []
        for ident in self.prerelease:
            if ident.isdigit():
                parts.append((0, int(ident)))
            else:
                parts.append((1, ident))
        return tuple(parts)

    def _cmpKey(self) -> tuple:
        # Build metadata is ignored; a release sorts after its prereleases
        releaseFlag = 1 if not self.prerelease else 0
        return (self.major, self.minor, self.patch, releaseFlag, self._prereleaseCmpKey())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self._cmpKey() == other._cmpKey()

    def __hash__(self) -> int:
        return hash(self._cmpKey())

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self._cmpKey() < other._cmpKey()



def parseVersion(raw: str) -> Version:
    """
    Parse a version string leniently (host package manifests use all sorts).

    Accepted forms (examples):
        "1"             -> 1.0.0
        "1.2"           -> 1.2.0
        "1.2.3"
        "1.2.3-alpha.1"
        "1.2.3+build.1"
        "v1.2.3"

    Rejected:
        ".1", "1.", "1..3", "1.2.3.4", "01.2.3" (leading zeroes), etc.
    """
    if raw is None:
        raise ValueError("Version string cannot be None")
    if not isinstance(raw, str):
        raise TypeError(f"Version string must be a string type, got {type(raw).__name__}")

    raw = raw.strip()
    if not raw:
        raise ValueError("Version string cannot be empty or whitespace only")

    if raw.startswith("v") and len(raw) > 1 and "0" <= raw[1] <= "9":
        raw = raw[1:]

    sepIndex = len(raw)
    for ch in ("-", "+"):
        idx = raw.find(ch)
        if idx != -1 and idx < sepIndex:
            sepIndex = idx

    core = raw[:sepIndex]
    suffix = raw[sepIndex:]

    coreParts = core.split(".")
    if not 1 <= len(coreParts) <= 3:
        raise ValueError(f"Invalid version core {core!r} in {raw!r}")
    if any(part == "" for part in coreParts):
        raise ValueError(f"Empty numeric component in version {raw!r}")

    numericParts: list[int] = []
    for part in coreParts:
        if not re.fullmatch(r"0|[1-9]\d*", part):
            raise ValueError(f"Invalid numeric component {part!r} in version {raw!r}")
        numericParts.append(int(part))
    while len(numericParts) < 3:
        numericParts.append(0)

    major, minor, patch = numericParts
    mtch = SEMVER_PATTERN_RE.match(f"{major}.{minor}.{patch}{suffix}")
    if not mtch:
        raise ValueError(f"Invalid semantic version {raw!r}")

    prereleaseGroup = mtch.group("prerelease")
    buildGroup = mtch.group("build")
    return Version(
        major=major,
        minor=minor,
        patch=patch,
        prerelease=tuple(prereleaseGroup.split(".")) if prereleaseGroup else (),
        build=tuple(buildGroup.split(".")) if buildGroup else (),
    )



def isStrictVersion(raw: object) -> bool:
    return isinstance(raw, str) and STRICT_VERSION_RE.match(raw) is not None



def parseStrictVersion(raw: str) -> Version:
    """Only `X.Y.Z` (the format package and entry versions must use)."""
    if not isStrictVersion(raw):
        raise ValueError(f"Version {raw!r} is not in X.Y.Z form")
    major, minor, patch = (int(part) for part in raw.split("."))
    return Version(major, minor, patch)



@dataclass(frozen=True)
class Comparator:
    operator: Operator
    version: Version



@dataclass(frozen=True)
class Requirement:
    """
    Alternatives of AND-ed comparator sets.
    `anyOf` empty means "any version".
    """
    anyOf: tuple[tuple[Comparator, ...], ...] = ()
    raw: str = ""

    @property
    def isAny(self) -> bool:
        return not self.anyOf



def _makeComparator(op: str, versionStr: str, rawRequirement: str) -> Comparator:
    if not versionStr:
        raise ValueError(f"Missing version after operator {op!r} in requirement {rawRequirement!r}")
    canonOp = "==" if op in ("=", "===") else op
    if canonOp not in ("<", "<=", ">", ">=", "==", "!="):
        raise ValueError(f"Unsupported operator {op!r} in requirement {rawRequirement!r}")
    return Comparator(canonOp, parseVersion(versionStr))  # type: ignore[arg-type]



def _caretToComparators(version: Version) -> tuple[Comparator, Comparator]:
    """
    ^M.m.p:
    - M > 0:           >= M.m.p  and  < (M+1).0.0
    - M == 0, m > 0:   >= 0.m.p  and  < 0.(m+1).0
    - M == 0, m == 0:  >= 0.0.p  and  < 0.0.(p+1)
    """
    major, minor, patch = version.major, version.minor, version.patch
    if major > 0:
        upper = Version(major + 1, 0, 0)
    elif minor > 0:
        upper = Version(0, minor + 1, 0)
    else:
        upper = Version(0, 0, patch + 1)
    return Comparator(">=", version), Comparator("<", upper)



def _tildeToComparators(text: str) -> tuple[Comparator, Comparator]:
    """~M.m.p and ~M.m  ->  >= M.m.p  and  < M.(m+1).0   (~M -> < (M+1).0.0)"""
    version = parseVersion(text)
    if "." in re.split(r"[-+]", text, maxsplit=1)[0]:
        upper = Version(version.major, version.minor + 1, 0)
    else:
        upper = Version(version.major + 1, 0, 0)
    return Comparator(">=", version), Comparator("<", upper)



def _compatibleToComparators(text: str, rawRequirement: str) -> tuple[Comparator, Comparator]:
    """
    pip compatible release, the last given component may grow:
    ~=1.4    ->  >= 1.4.0  and  < 2.0.0
    ~=1.4.5  ->  >= 1.4.5  and  < 1.5.0
    """
    core = re.split(r"[-+]", text, maxsplit=1)[0]
    if core.count(".") < 1:
        raise ValueError(f"~= needs at least two version components in requirement {rawRequirement!r}")
    version = parseVersion(text)
    if core.count(".") == 1:
        upper = Version(version.major + 1, 0, 0)
    else:
        upper = Version(version.major, version.minor + 1, 0)
    return Comparator(">=", version), Comparator("<", upper)



def _wildcardToComparators(token: str) -> tuple[Comparator, ...]:
    # "1.x", "1.2.*"
    parts = token.split(".")
    fixed: list[int] = []
    for part in parts:
        if part in ("x", "X", "*"):
            break
        fixed.append(int(part))
    if not fixed:
        return ()
    if len(fixed) == 1:
        return Comparator(">=", Version(fixed[0], 0, 0)), Comparator("<", Version(fixed[0] + 1, 0, 0))
    return (
        Comparator(">=", Version(fixed[0], fixed[1], 0)),
        Comparator("<", Version(fixed[0], fixed[1] + 1, 0)),
    )



_OPERATORS = ("===", "<=", ">=", "==", "!=", "~=", "<", ">", "=")
_WILDCARD_RE = re.compile(r"^\d+(\.(\d+|[xX*]))*(\.[xX*])$|^\d+\.[xX*]$")



def _parseAlternative(text: str, rawRequirement: str) -> tuple[Comparator, ...]:
    # Hyphen range: "1.2.3 - 2.0.0"
    mtch = re.match(r"^(?P<left>\S+)\s+-\s+(?P<right>\S+)$", text)
    if mtch:
        left = parseVersion(mtch.group("left"))
        right = parseVersion(mtch.group("right"))
        if right < left:
            raise ValueError(f"Invalid hyphen range {rawRequirement!r}: upper < lower")
        return Comparator(">=", left), Comparator("<=", right)

    comparators: list[Comparator] = []
    # npm separates with spaces, pip with commas; ">= 1.0" is allowed too
    tokens = re.sub(r"(===|<=|>=|==|!=|~=|<|>|=)\s+", r"\1", text.replace(",", " ")).split()
    for token in tokens:
        if token in ("*", "x", "X", "latest"):
            continue
        if token[0] == "^" or (token[0] == "~" and not token.startswith("~=")):
            if len(token) == 1:
                raise ValueError(f"Missing version after {token[0]!r} in requirement {rawRequirement!r}")
            if token[0] == "^":
                comparators.extend(_caretToComparators(parseVersion(token[1:])))
            else:
                comparators.extend(_tildeToComparators(token[1:]))
            continue
        if token.startswith("~="):
            comparators.extend(_compatibleToComparators(token[2:], rawRequirement))
            continue
        op = next((candidate for candidate in _OPERATORS if token.startswith(candidate)), None)
        if op is not None:
            comparators.append(_makeComparator(op, token[len(op):], rawRequirement))
            continue
        if _WILDCARD_RE.match(token):
            comparators.extend(_wildcardToComparators(token))
            continue
        comparators.append(Comparator("==", parseVersion(token)))
    return tuple(comparators)



def parseRequirement(rawVersion: str | None) -> Requirement:
    """
    Parse a version constraint the way npm/pip/cargo write them.

    Accepted forms:
        None, "", "*"           -> any version
        "1.2.3"                 -> == 1.2.3
        ">=1.2.0 <2.0.0"        -> AND
        ">=1.2,<2"              -> AND (pip style)
        "^1.2.3", "~1.2.3"      -> npm ranges
        "~=1.4"                 -> pip compatible release
        "1.x", "1.2.*"          -> wildcards
        "1.2.3 - 2.0.0"         -> inclusive range
        "^1.0.0 || ^2.0.0"      -> alternatives

    Raises ValueError for anything else.
    """
    if rawVersion is None:
        return Requirement()
    if not isinstance(rawVersion, str):
        raise TypeError(f"Requirement must be a string or None, got {type(rawVersion).__name__}")

    raw = rawVersion.strip()
    if not raw or raw == "*":
        return Requirement(raw=raw)

    alternatives: list[tuple[Comparator, ...]] = []
    for part in raw.split("||"):
        part = part.strip()
        if not part:
            raise ValueError(f"Empty alternative in requirement {raw!r}")
        comparators = _parseAlternative(part, raw)
        if not comparators:
            # One wildcard alternative matches everything
            return Requirement(raw=raw)
        alternatives.append(comparators)
    return Requirement(anyOf=tuple(alternatives), raw=raw)



def _satisfiesAll(version: Version, comparators: tuple[Comparator, ...]) -> bool:
    for comparator in comparators:
        op = comparator.operator
        if op == "==" and not version == comparator.version:
            return False
        if op == "!=" and version == comparator.version:
            return False
        if op == ">=" and not version >= comparator.version:
            return False
        if op == "<=" and not version <= comparator.version:
            return False
        if op == ">" and not version > comparator.version:
            return False
        if op == "<" and not version < comparator.version:
            return False
    return True



def versionSatisfies(version: Version, requirement: Requirement | None) -> bool:
    """requirement None or "any" => always True."""
    if requirement is None or requirement.isAny:
        return True
    return any(_satisfiesAll(version, comparators) for comparators in requirement.anyOf)



def compareVersions(local: str, remote: str) -> Literal["newer", "same", "older"]:
    """
    Where `remote` stands relative to `local`.
    Unparseable versions compare textually: equal → "same", otherwise "newer".
    """
    try:
        localVersion = parseVersion(local)
        remoteVersion = parseVersion(remote)
    except (TypeError, ValueError):
        return "same" if str(local).strip() == str(remote).strip() else "newer"
    if remoteVersion > localVersion:
        return "newer"
    if remoteVersion < localVersion:
        return "older"
    return "same"
