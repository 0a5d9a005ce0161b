"""Terminal board for Vibeflow."""
