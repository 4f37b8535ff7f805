"""Quire - workspace state core for a vault-based note-taking app."""

__version__ = "0.1.0"
