"""
S3 Checksum Compliance Harness.

A tool to verify how an S3-compatible storage server handles upload
checksums, with client default checksums disabled and enabled, on both
the single-part and multipart upload paths.
"""

__version__ = "1.0.0"

from checksum_harness.cli import main

__all__ = ["main", "__version__"]
