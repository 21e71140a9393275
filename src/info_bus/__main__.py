"""Module entrypoint.

Allows:
    python -m info_bus cut-log app.log --head 10 --tail 1000
"""

from __future__ import annotations

from info_bus.cli import main

if __name__ == "__main__":
    main()
