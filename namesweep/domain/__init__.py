"""Domain Layer: models, events, interfaces and the exception taxonomy."""
