import sys

from libprovision.cli import main

sys.exit(main())
