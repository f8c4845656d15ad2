import sys

from graftexpr.cli import main

sys.exit(main())
