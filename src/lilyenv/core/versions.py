"""Version model: user version requests and concrete interpreter builds.

A VersionSpec is what the user typed (possibly partial). A BuildId is one
concrete downloadable build. Matching and "pick latest" ordering live here so
that the catalog resolver and the interpreter store agree on them.
"""

import re
from dataclasses import dataclass
from enum import Enum

from packaging.version import InvalidVersion, Version

from lilyenv.core.errors import ParseError

SPEC_PATTERN = re.compile(
    r"""
    ^
    (?P<major>\d+)
    (?:\.(?P<minor>\d+)
        (?:\.(?P<patch>\d+))?
    )?
    (?:(?P<pre>a|b|rc)(?P<pre_number>\d+)?)?   # pre-release channel hint
    (?P<threaded>t)?                          # free-threaded build
    $
    """,
    re.VERBOSE,
)

ASSET_PATTERN = re.compile(
    r"""
    ^cpython-
    (?P<version>[^+]+)
    \+(?P<release_tag>\d+)
    -(?P<target>.+?)
    \.tar\.(?P<compression>gz|zst)
    $
    """,
    re.VERBOSE,
)

DEBUG_SUFFIX = "-debug"
FREETHREADED_SUFFIX = "t"


class Variant(Enum):
    NORMAL = "normal"
    DEBUG = "debug"
    FREETHREADED = "freethreaded"
    FREETHREADED_DEBUG = "freethreaded+debug"

    @staticmethod
    def from_flags(*, debug: bool, freethreaded: bool) -> "Variant":
        if debug and freethreaded:
            return Variant.FREETHREADED_DEBUG
        if debug:
            return Variant.DEBUG
        if freethreaded:
            return Variant.FREETHREADED
        return Variant.NORMAL

    @property
    def debug(self) -> bool:
        return self in (Variant.DEBUG, Variant.FREETHREADED_DEBUG)

    @property
    def freethreaded(self) -> bool:
        return self in (Variant.FREETHREADED, Variant.FREETHREADED_DEBUG)

    @property
    def suffix(self) -> str:
        """Suffix appended to version numbers in build names, e.g. ``t-debug``."""
        return ("t" if self.freethreaded else "") + ("-debug" if self.debug else "")


@dataclass(frozen=True)
class Channel:
    """Release channel of a build: stable, or a numbered pre-release."""

    kind: str | None = None
    number: int = 0

    @property
    def is_stable(self) -> bool:
        return self.kind is None

    def __str__(self) -> str:
        if self.kind is None:
            return ""
        return f"{self.kind}{self.number}"


STABLE = Channel()


def parse_release(text: str) -> tuple[int, int, int, Channel]:
    """Parse a ``major.minor.patch`` release with an optional pre-release tag.

    Only the canonical spelling is accepted, so ``3.13.0rc2`` parses but
    ``3.13.0-rc2``, ``3.12.0.post1`` or ``3.12`` do not.

    Raises:
        ParseError: If the text is not a canonical three-part release
    """
    try:
        version = Version(text)
    except InvalidVersion:
        raise ParseError(f"{text!r} is not a build name") from None
    if (
        str(version) != text
        or len(version.release) != 3
        or version.epoch
        or version.is_devrelease
        or version.is_postrelease
        or version.local is not None
    ):
        raise ParseError(f"{text!r} is not a build name")
    major, minor, patch = version.release
    channel = STABLE if version.pre is None else Channel(*version.pre)
    return major, minor, patch, channel


@dataclass(frozen=True)
class BuildId:
    """Fully concrete identifier of one downloadable interpreter build."""

    major: int
    minor: int
    patch: int
    channel: Channel = STABLE
    variant: Variant = Variant.NORMAL

    @property
    def version(self) -> Version:
        return Version(f"{self.major}.{self.minor}.{self.patch}{self.channel}")

    @property
    def precedence(self) -> Version:
        """Key for "pick latest". The variant takes no part in it."""
        return self.version

    @property
    def series(self) -> str:
        return f"{self.major}.{self.minor}"

    @property
    def name(self) -> str:
        """Canonical name, also used for on-disk directory names."""
        return f"{self.major}.{self.minor}.{self.patch}{self.channel}{self.variant.suffix}"

    def __str__(self) -> str:
        return self.name

    @staticmethod
    def parse_name(name: str) -> "BuildId":
        """Parse a canonical build name such as ``3.13.0rc2t-debug``.

        Raises:
            ParseError: If the name is not a canonical build name
        """
        release = name
        debug = release.endswith(DEBUG_SUFFIX)
        if debug:
            release = release.removesuffix(DEBUG_SUFFIX)
        freethreaded = release.endswith(FREETHREADED_SUFFIX)
        if freethreaded:
            release = release.removesuffix(FREETHREADED_SUFFIX)
        try:
            major, minor, patch, channel = parse_release(release)
        except ParseError:
            raise ParseError(f"{name!r} is not a build name") from None
        return BuildId(
            major=major,
            minor=minor,
            patch=patch,
            channel=channel,
            variant=Variant.from_flags(debug=debug, freethreaded=freethreaded),
        )


@dataclass(frozen=True)
class VersionSpec:
    """A possibly partial version request. ``None`` fields are wildcards.

    The variant is never a wildcard: an unflagged request asks for ``normal``.
    ``prerelease`` is a channel hint (``a``, ``b`` or ``rc``) and
    ``prerelease_number`` optionally pins its number.
    """

    major: int
    minor: int | None = None
    patch: int | None = None
    variant: Variant = Variant.NORMAL
    prerelease: str | None = None
    prerelease_number: int | None = None

    @property
    def is_concrete(self) -> bool:
        if self.minor is None or self.patch is None:
            return False
        return self.prerelease is None or self.prerelease_number is not None

    @property
    def minimum_channel(self) -> Channel:
        if self.prerelease is None:
            return STABLE
        return Channel(self.prerelease, self.prerelease_number or 0)

    def __str__(self) -> str:
        text = str(self.major)
        if self.minor is not None:
            text += f".{self.minor}"
            if self.patch is not None:
                text += f".{self.patch}"
        if self.prerelease is not None:
            text += self.prerelease
            if self.prerelease_number is not None:
                text += str(self.prerelease_number)
        return text + self.variant.suffix


def parse_spec(text: str, *, debug: bool = False) -> VersionSpec:
    """Parse a user version argument such as ``3.12``, ``3.13t`` or ``3.13.0rc2``.

    Debug builds are requested with the ``debug`` flag rather than in the text.

    Raises:
        ParseError: If the text is not a valid version request
    """
    stripped = text.strip()
    if stripped.endswith("-debug"):
        raise ParseError(
            f"{text} is not a valid Python version: request debug builds with --debug"
        )
    if stripped.startswith(("pypy", "py")):
        raise ParseError(f"{text} is not a valid Python version: only CPython builds are managed")
    match = SPEC_PATTERN.match(stripped)
    if match is None:
        raise ParseError(f"{text} is not a valid Python version")

    return VersionSpec(
        major=int(match["major"]),
        minor=None if match["minor"] is None else int(match["minor"]),
        patch=None if match["patch"] is None else int(match["patch"]),
        variant=Variant.from_flags(debug=debug, freethreaded=match["threaded"] is not None),
        prerelease=match["pre"],
        prerelease_number=None if match["pre_number"] is None else int(match["pre_number"]),
    )


def compare_builds(left: BuildId, right: BuildId) -> int:
    """Return -1, 0 or 1 comparing two builds by release precedence."""
    if left.precedence < right.precedence:
        return -1
    if left.precedence > right.precedence:
        return 1
    return 0


def matches(spec: VersionSpec, build: BuildId) -> bool:
    """Check whether a concrete build satisfies a version request."""
    if spec.major != build.major:
        return False
    if spec.minor is not None and spec.minor != build.minor:
        return False
    if spec.patch is not None and spec.patch != build.patch:
        return False
    if spec.variant != build.variant:
        return False
    if spec.prerelease is None:
        return build.channel.is_stable
    if spec.is_concrete:
        return build.channel == spec.minimum_channel
    floor = Version(f"{build.major}.{build.minor}.{build.patch}{spec.minimum_channel}")
    return build.version >= floor


@dataclass(frozen=True)
class AssetName:
    """Parsed upstream archive filename."""

    build: BuildId
    release_tag: str
    target: str
    compression: str


def parse_asset_filename(filename: str) -> AssetName | None:
    """Parse an upstream archive name, returning None for unrelated files.

    Example:
        ``cpython-3.13.1+20250115-x86_64-unknown-linux-gnu-freethreaded+debug-full.tar.zst``
    """
    match = ASSET_PATTERN.match(filename)
    if match is None:
        return None
    try:
        major, minor, patch, channel = parse_release(match["version"])
    except ParseError:
        return None
    target = match["target"]
    tokens = set(re.split(r"[-+]", target))
    build = BuildId(
        major=major,
        minor=minor,
        patch=patch,
        channel=channel,
        variant=Variant.from_flags(debug="debug" in tokens, freethreaded="freethreaded" in tokens),
    )
    return AssetName(
        build=build,
        release_tag=match["release_tag"],
        target=target,
        compression=match["compression"],
    )
