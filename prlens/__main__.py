"""Main entry point when executing prlens as a package.

This allows running the package using python -m prlens.
"""

from prlens.main import cli_entry_point

if __name__ == "__main__":
    cli_entry_point()
