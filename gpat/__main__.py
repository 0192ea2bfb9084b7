"""
GPAT registry - main entry point.
"""

from gpat.cli import main

if __name__ == "__main__":
    main()
