"""Face identity resolution service."""
