"""Domain ports.

Abstract base classes for the console and for request shaping. The engine
depends on these; `infrastructure` provides the implementations.
"""
