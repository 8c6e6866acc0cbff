"""Allow running as ``python -m parcel_tracker``."""

import sys

from .cli import main

sys.exit(main())
