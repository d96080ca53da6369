"""
Domain Layer - Entities, value objects, enums and the transition table.

Pure business concepts with no I/O.
"""
