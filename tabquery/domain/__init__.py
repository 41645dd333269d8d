"""
Domain Layer

Schema registry and query descriptors.
"""
