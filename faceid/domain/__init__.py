"""Domain model and interfaces."""
