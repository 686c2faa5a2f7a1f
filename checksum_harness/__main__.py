import sys

from checksum_harness.cli import main

sys.exit(main())
