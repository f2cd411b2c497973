import sys

from driverstation.cli import main

sys.exit(main())
