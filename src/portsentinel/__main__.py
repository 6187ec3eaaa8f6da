import sys

from portsentinel.cli import main

sys.exit(main())
