"""Reassembles container images exported to S3 into an ECR repository."""

__version__ = "1.0.0"
