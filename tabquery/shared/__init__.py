"""
Shared Components

Exceptions and result types used across the library.
"""
