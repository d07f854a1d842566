"""
reposcm - repo manifest checkout and change detection

Drives the ``repo`` tool through configurable behaviors, records the
manifest state of every checkout, and decides whether a new manifest
state warrants a build.
"""

__version__ = "0.3.0"

# Re-export core models for convenience
from reposcm.core.config.models import RepoScmConfig
from reposcm.core.manifest import ChangeSet, ManifestSnapshot

__all__ = ["ChangeSet", "ManifestSnapshot", "RepoScmConfig", "__version__"]
