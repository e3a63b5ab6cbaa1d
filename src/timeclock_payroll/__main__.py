"""Entry point for ``python -m timeclock_payroll``."""

import sys

from timeclock_payroll.cli import main

if __name__ == "__main__":
    sys.exit(main())
