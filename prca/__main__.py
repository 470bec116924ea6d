"""Allow running the tool as ``python -m prca``."""

import sys

from prca.cli import main

sys.exit(main())
