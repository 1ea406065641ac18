"""Session core services: pool accounting, feedback aggregation, adaptive difficulty."""
