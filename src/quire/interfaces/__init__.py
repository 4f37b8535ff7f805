"""User-facing interfaces for Quire."""
