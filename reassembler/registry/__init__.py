"""Container registry clients."""
