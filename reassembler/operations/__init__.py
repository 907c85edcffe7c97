"""Pipeline operations."""
