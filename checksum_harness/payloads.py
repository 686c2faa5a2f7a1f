"""Payload construction for upload scenarios."""

import os

from checksum_harness.models import PayloadKind, UploadScenario

# Random payloads are generated in 1 MiB chunks
CHUNK_SIZE = 1024 * 1024


def random_bytes(size: int) -> bytes:
    """Return ``size`` random bytes.

    Args:
        size: Number of bytes (0 allowed).

    Returns:
        Random bytes from os.urandom.
    """
    if size < 0:
        raise ValueError("size must be non-negative")

    buf = bytearray()
    remaining = size
    while remaining > 0:
        write_size = min(CHUNK_SIZE, remaining)
        buf += os.urandom(write_size)
        remaining -= write_size
    return bytes(buf)


def build_payload(scenario: UploadScenario) -> bytes:
    """Build the payload a scenario uploads.

    TEXT scenarios upload their text as UTF-8; RANDOM scenarios upload
    ``payload_size`` random bytes.
    """
    if scenario.payload_kind == PayloadKind.TEXT:
        return (scenario.text or "").encode("utf-8")
    return random_bytes(scenario.payload_size)
