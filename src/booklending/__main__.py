"""Main entry point for the booklending package."""

from booklending.cli import main

if __name__ == "__main__":
    main()
