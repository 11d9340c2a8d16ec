"""Catalog of downloadable builds and resolution of version requests against it."""

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from lilyenv.core.errors import AmbiguousError, NotFoundError
from lilyenv.core.versions import (
    BuildId,
    VersionSpec,
    matches,
    parse_asset_filename,
)

logger = logging.getLogger(__name__)

# Lower is preferred when several archives provide the same build
FLAVOUR_PREFERENCE = ["install_only", "install_only_stripped", "pgo+lto", "", "pgo", "lto", "noopt"]
VARIANT_TOKENS = {"freethreaded", "debug", "full"}


@dataclass(frozen=True)
class ReleaseAsset:
    """One file attached to an upstream release, as reported by the network layer."""

    name: str
    url: str
    sha256: str | None = None
    size: int | None = None


@dataclass(frozen=True)
class CatalogEntry:
    """A downloadable build: where to fetch it and how to verify it."""

    build: BuildId
    url: str
    filename: str
    sha256: str | None
    size: int | None
    release_tag: str


def _flavour_rank(target: str, platform: str) -> int:
    flavour = target[len(platform) + 1 :]
    core = "+".join(
        token
        for token in flavour.replace("-", "+").split("+")
        if token and token not in VARIANT_TOKENS
    )
    if core in FLAVOUR_PREFERENCE:
        return FLAVOUR_PREFERENCE.index(core)
    return len(FLAVOUR_PREFERENCE)


def build_catalog(assets: Iterable[ReleaseAsset], platform: str) -> list[CatalogEntry]:
    """Build a catalog holding at most one entry per build for the given platform.

    Archives of the same build compete: the newest release tag wins, then the
    preferred archive flavour.

    Args:
        assets: Release assets from every scanned upstream release
        platform: Target triple such as ``x86_64-unknown-linux-gnu``

    Returns:
        Catalog entries sorted newest first
    """
    chosen: dict[BuildId, tuple[tuple[int, int], CatalogEntry]] = {}
    for asset in assets:
        if asset.name.endswith(".sha256"):
            continue
        parsed = parse_asset_filename(asset.name)
        if parsed is None:
            logger.debug("Skipping unrecognised asset %s", asset.name)
            continue
        if not parsed.target.startswith(f"{platform}-"):
            continue
        rank = (-int(parsed.release_tag), _flavour_rank(parsed.target, platform))
        entry = CatalogEntry(
            build=parsed.build,
            url=asset.url,
            filename=asset.name,
            sha256=asset.sha256,
            size=asset.size,
            release_tag=parsed.release_tag,
        )
        current = chosen.get(parsed.build)
        if current is None or rank < current[0]:
            chosen[parsed.build] = (rank, entry)

    return sort_newest_first(entry for _, entry in chosen.values())


def sort_newest_first(entries: Iterable[CatalogEntry]) -> list[CatalogEntry]:
    return sorted(
        entries,
        key=lambda entry: (entry.build.precedence, entry.build.variant.value),
        reverse=True,
    )


def find_entry(catalog: Iterable[CatalogEntry], build: BuildId) -> CatalogEntry:
    """Return the catalog entry for an exact build.

    Raises:
        NotFoundError: If the catalog has no entry for the build
    """
    for entry in catalog:
        if entry.build == build:
            return entry
    raise NotFoundError(f"Could not find {build} to download.")


def nearest_alternatives(
    catalog: Iterable[CatalogEntry], spec: VersionSpec, limit: int = 5
) -> list[str]:
    """Names of the newest builds in the series closest to the request.

    Only used to make error messages helpful; never substituted for the request.
    """
    entries = list(catalog)
    same_variant = [entry for entry in entries if entry.build.variant == spec.variant]
    candidates = same_variant or entries
    if not candidates:
        return []

    def distance(entry: CatalogEntry) -> tuple[int, int, int]:
        build = entry.build
        # without a minor, the newest series of the nearest major wins
        minor_gap = 0 if spec.minor is None else abs(build.minor - spec.minor)
        return (abs(build.major - spec.major), minor_gap, -build.minor)

    nearest = min(candidates, key=distance).build
    series = [
        entry
        for entry in candidates
        if (entry.build.major, entry.build.minor) == (nearest.major, nearest.minor)
    ]
    return [entry.build.name for entry in sort_newest_first(series)[:limit]]


def resolve(
    catalog: Iterable[CatalogEntry], spec: VersionSpec, *, exact_latest: bool = True
) -> BuildId:
    """Select the single build a version request refers to.

    A partial request resolves to the newest matching build. With
    ``exact_latest=False`` a partial request must match exactly one build.

    Raises:
        NotFoundError: If nothing matches; names the nearest available builds
        AmbiguousError: If the request does not identify one build
    """
    entries = list(catalog)
    candidates = [entry for entry in entries if matches(spec, entry.build)]
    if not candidates:
        raise NotFoundError(
            f"Could not find {spec} to download.",
            alternatives=nearest_alternatives(entries, spec),
        )

    distinct = {entry.build for entry in candidates}
    if not exact_latest and len(distinct) > 1:
        names = ", ".join(entry.build.name for entry in sort_newest_first(candidates))
        raise AmbiguousError(f"{spec} matches several builds: {names}")

    best = max(distinct, key=lambda build: build.precedence)
    claims = {entry.url for entry in candidates if entry.build == best}
    if len(claims) > 1:
        raise AmbiguousError(f"Catalog lists {best} more than once")
    return best


def upgrade_spec(build: BuildId) -> VersionSpec:
    """Request for the newest stable bugfix release in the same series and variant."""
    return VersionSpec(major=build.major, minor=build.minor, variant=build.variant)


def group_by_series(
    catalog: Iterable[CatalogEntry], spec: VersionSpec | None = None
) -> list[tuple[str, list[CatalogEntry]]]:
    """Group catalog entries by ``major.minor`` for listing, newest series first.

    Without a request every entry is listed, pre-releases included.
    """
    entries = sort_newest_first(
        entry for entry in catalog if spec is None or matches(spec, entry.build)
    )
    groups: dict[str, list[CatalogEntry]] = {}
    for entry in entries:
        groups.setdefault(entry.build.series, []).append(entry)
    return list(groups.items())
