"""Entry point for ``python -m hrms_core``."""

import sys

from hrms_core.cli import main

if __name__ == "__main__":
    sys.exit(main())
