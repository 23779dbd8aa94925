import sys

from pageviewer.main import main

sys.exit(main())
