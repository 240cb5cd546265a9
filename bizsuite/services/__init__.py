"""
Process-local services behind the API routes.

Each service keeps its in-memory state in a module-level singleton and is
not synchronized across processes.
"""
