"""Detection of the target triple used to pick upstream archives."""

import platform

from lilyenv.core.errors import UnsupportedPlatform

TARGET_TRIPLES = {
    ("Linux", "x86_64"): "x86_64-unknown-linux-gnu",
    ("Linux", "aarch64"): "aarch64-unknown-linux-gnu",
    ("Darwin", "x86_64"): "x86_64-apple-darwin",
    ("Darwin", "arm64"): "aarch64-apple-darwin",
    ("Darwin", "aarch64"): "aarch64-apple-darwin",
}


def current_platform(system: str | None = None, machine: str | None = None) -> str:
    """Return the target triple for this machine.

    Raises:
        UnsupportedPlatform: If no standalone builds exist for this machine
    """
    key = (system or platform.system(), machine or platform.machine())
    triple = TARGET_TRIPLES.get(key)
    if triple is None:
        raise UnsupportedPlatform(f"{key[0]} on {key[1]} is not supported.")
    return triple
