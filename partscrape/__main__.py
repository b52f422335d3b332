import sys

from partscrape.cli import main

sys.exit(main())
