"""Pydantic models for API request bodies and error responses."""
