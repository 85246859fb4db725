import sys

from grol.main import main

sys.exit(main())
