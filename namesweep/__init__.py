"""namesweep: concurrent, sharded key availability checks."""

__version__ = "1.0.0"
