"""Object storage access and bulk retrieval."""
