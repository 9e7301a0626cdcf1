"""API Resilience Implementations.

Contains the admission-control limiter used by every worker and the retry
controller with exponential backoff used around every lookup call.
Bounded Context: API Resilience
"""
