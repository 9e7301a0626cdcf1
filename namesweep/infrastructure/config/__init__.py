"""Configuration loading (.env, environment, YAML)."""
