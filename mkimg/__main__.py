import sys

from mkimg.main import main


sys.exit(main())
