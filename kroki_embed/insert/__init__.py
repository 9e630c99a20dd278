"""Line-based text insertion for diagram preambles."""

from .lib import InsertionError, apply_directive, insert_after_line

__all__ = ["InsertionError", "apply_directive", "insert_after_line"]
