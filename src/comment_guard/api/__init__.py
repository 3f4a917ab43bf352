"""HTTP API for the comment moderation services."""
