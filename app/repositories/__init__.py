"""
Repository package for data access layers.

`ArtifactRepository` is the only writer of artifact status; services open a
session, call the repository, and commit before announcing anything.
"""

from app.repositories.artifacts import ArtifactRepository

__all__ = ["ArtifactRepository"]
