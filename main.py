#!/usr/bin/env python3
# Microservice repository manager: branch and PR management across service checkouts
#
# Main functions:
#   - list / branches / status / changes: read-only views over every service
#   - update / create / sync / drop / stash: branch moves, run as the service user
#   - pr / prs / review: pull requests through the GitHub CLI, optional AI review
#
# Usage:
#   sudo python main.py update REN-1234
#   python main.py            # interactive menu

import sys
from pathlib import Path

SRC = Path(__file__).resolve().parent / "src"
if SRC.is_dir() and str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from repo_manager.cli import main  # noqa: E402


if __name__ == '__main__':
    sys.exit(main())
