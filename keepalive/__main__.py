import sys

from keepalive.main import main

sys.exit(main())
