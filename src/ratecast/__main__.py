import sys

from ratecast._cli import main

sys.exit(main())
