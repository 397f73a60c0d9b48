"""Infrastructure layer: database, constraint graph, repositories.

This layer depends on stdlib, third-party libs (SQLAlchemy, NetworkX,
Alembic) and the domain layer. It must never import from services,
commands, or output.
"""
