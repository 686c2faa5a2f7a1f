#!/usr/bin/env python3
"""
S3 Checksum Compliance Harness

Run this script to start an ephemeral S3-compatible server in a container
and check how it handles uploads with and without client default checksums.

Usage:
    python run.py                          # Use harness.json / defaults
    python run.py -c custom.json           # Use custom config
    python run.py -s small_text_no_checksum  # Run specific scenarios
    python run.py -q                       # Quiet mode (summary only)
    python run.py -j results.json          # Output JSON results
    python run.py --concurrency 4          # Run scenarios concurrently
    python run.py --github-actions         # GitHub Actions mode
"""

import sys
from checksum_harness.cli import main

if __name__ == "__main__":
    sys.exit(main())
