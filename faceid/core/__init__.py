"""Core settings, logging and wiring."""
