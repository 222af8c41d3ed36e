import sys

from imagebackup.main import main

sys.exit(main())
