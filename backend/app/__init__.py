"""FastAPI application for the PDF render service."""
