"""Rich console user interface."""
