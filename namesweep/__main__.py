"""Main entry point when executing namesweep as a package.

This allows running the package using python -m namesweep.
"""

from namesweep.main import cli_entry_point

if __name__ == "__main__":
    cli_entry_point()
