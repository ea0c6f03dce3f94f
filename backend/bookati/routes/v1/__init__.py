# backend/bookati/routes/v1/__init__.py
"""Version 1 API routes."""
