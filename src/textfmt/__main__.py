"""Allow running textfmt as ``python -m textfmt``."""

import sys

from textfmt.cli import main

sys.exit(main())
