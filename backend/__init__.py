"""PDF render service backend."""
