"""External collaborators of the signal engine."""
