"""Domain Event definitions.

Messages workers put on the orchestrator's queue: result batches, completion
and failure notices.
"""
