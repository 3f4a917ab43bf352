"""Core process configuration for Comment Guard."""
