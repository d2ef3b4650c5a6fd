"""
Integration tests for configdb.

These run the repository, compiled pipelines and tenant deletion against
an in-memory mongomock database.
"""
