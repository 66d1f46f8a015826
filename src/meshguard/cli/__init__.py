"""Command-line interface for MeshGuard."""
