"""Main entry point when executing chatlink as a package.

This allows running the package using python -m chatlink.
"""

from chatlink.main import cli_entry_point

if __name__ == "__main__":
    cli_entry_point()
