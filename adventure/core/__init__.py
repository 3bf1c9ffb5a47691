"""Core primitives (context stacking and controller events).

Kept free of FastAPI concerns so it can be reused by API routes and tests.
"""
