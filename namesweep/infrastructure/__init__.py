"""Infrastructure Layer: Contains concrete implementations and adapters.

Connects the application to the outside world (lookup service over HTTP,
file system, console, configuration) by implementing the interfaces defined
in the domain layer.
"""
