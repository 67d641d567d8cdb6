import sys

from tangl.main import main

sys.exit(main())
