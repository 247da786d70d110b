import sys

from media_catalog.main import main


sys.exit(main())
