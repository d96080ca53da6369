"""
Business Logic Layer - Services and collaborator interfaces.

Services coordinate repositories and collaborators to carry out the
order lifecycle. They hold no state of their own beyond their
dependencies.
"""
