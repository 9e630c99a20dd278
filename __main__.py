"""CLI entry point for kroki-embed.

Run from the repository root with ``python . <command>``; the installed
``kroki-embed`` script calls the same ``main``.
"""

import sys

from kroki_embed.cli import main

if __name__ == "__main__":
    sys.exit(main())
