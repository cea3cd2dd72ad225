"""Scorecard domain services: player state, scoring, ranking and storage.

This package contains the pure scoring logic that HTTP routes and socket
handlers import, keeping transport concerns separated from the round
bookkeeping. Only ``store.py`` touches persistence.
"""
