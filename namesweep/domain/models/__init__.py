"""Domain models: keys, results, run configuration and summaries."""
