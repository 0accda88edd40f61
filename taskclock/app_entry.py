from __future__ import annotations

import sys
from pathlib import Path

try:
    from taskclock.cli import main as cli_main
except ModuleNotFoundError:
    # Fallback for direct script execution: python taskclock/app_entry.py
    project_root = Path(__file__).resolve().parents[1]
    if str(project_root) not in sys.path:
        sys.path.insert(0, str(project_root))
    from taskclock.cli import main as cli_main


def main() -> int:
    # With no arguments, serve the API.
    argv = sys.argv[1:] or ["serve"]
    return cli_main(argv)


if __name__ == "__main__":
    raise SystemExit(main())
