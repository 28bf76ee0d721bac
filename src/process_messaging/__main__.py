from __future__ import annotations

import sys

from process_messaging.app.cli import main

if __name__ == "__main__":
    sys.exit(main())
