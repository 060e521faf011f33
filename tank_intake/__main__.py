"""Allow ``python -m tank_intake``."""

import sys

from .cli import main

sys.exit(main())
