"""HTTP adapters for the remote lookup service.

Contains the httpx-based client, the batch-first requester with single-key
fallback, and the request shaping policies.
"""
