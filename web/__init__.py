"""Flask API and request authentication."""
