import sys

from philosophy_dialog.cli import main


sys.exit(main())
