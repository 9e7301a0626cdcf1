"""Persistence adapters: result sinks, output layout and the failure ledger."""
