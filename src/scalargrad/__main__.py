import sys

from scalargrad.main import main

sys.exit(main())
