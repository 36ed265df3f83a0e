"""Allow ``python -m litsearch``."""

import sys

from litsearch.presentation.cli import main

sys.exit(main())
