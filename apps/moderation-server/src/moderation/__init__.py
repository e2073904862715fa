"""Content moderation server."""
