"""Image manifests, layer chunking and local builds."""
