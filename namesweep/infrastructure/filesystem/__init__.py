"""Local file system adapters (key list input)."""
