"""Clients for external collaborators: generation provider, asset store, stitcher."""
