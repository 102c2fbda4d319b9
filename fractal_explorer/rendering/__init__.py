"""Coloring, frame buffers and image export."""
