#!/usr/bin/env python3
"""
Main entry point for the ILIAS synchronizer.
"""

import sys

from iliasync.cli import main


if __name__ == '__main__':
    sys.exit(main())
