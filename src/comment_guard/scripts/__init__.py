"""Operational scripts for Comment Guard."""
