# ABOUTME: Entry point for running the CLI as a module.
# ABOUTME: Provides simple command to run: python -m phasekeeper.interface status <campaign_id>

import sys

from phasekeeper.interface.cli import main

if __name__ == "__main__":
    sys.exit(main())
