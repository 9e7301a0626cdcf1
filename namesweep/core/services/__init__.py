"""Application services: key list preparation, workers and the run orchestrator."""
