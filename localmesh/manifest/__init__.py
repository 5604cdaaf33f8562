"""Manifest persistence."""

from localmesh.manifest.store import YamlManifestStore

__all__ = ["YamlManifestStore"]
