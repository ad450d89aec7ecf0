"""Database access layer: pool, connection, transactions and SQL generation.

Kept free of application logic so callers stay storage-agnostic.
"""
