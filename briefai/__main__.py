"""Main entry point when executing briefai as a package.

This allows running the package using python -m briefai.
"""

from briefai.main import cli_entry_point

if __name__ == "__main__":
    cli_entry_point()
