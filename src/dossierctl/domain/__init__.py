"""Domain layer: nodes, labels, feature collections, cursors.

This layer depends only on stdlib and pydantic.
It must never import from services, infrastructure, commands, or config.
"""
