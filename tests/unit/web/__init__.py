"""Unit tests for Cardiva web route modules.

Each route module is mounted on a bare FastAPI app and exercised through
TestClient, with the database session and current user replaced through
``app.dependency_overrides``.
"""
