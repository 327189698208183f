"""Free-text reply interpretation."""
