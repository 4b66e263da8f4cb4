import sys

from msmgr.app.main import main

sys.exit(main())
