"""
Entry point for running Image Flow as a module.

Usage:
    python -m image_flow
"""

import sys

from image_flow.main import main

if __name__ == "__main__":
    sys.exit(main())
