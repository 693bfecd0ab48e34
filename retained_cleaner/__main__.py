import sys

from retained_cleaner.cli import main

if __name__ == "__main__":
    sys.exit(main())
