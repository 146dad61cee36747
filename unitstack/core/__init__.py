"""Core gameplay primitives (units, snapshots and session events).

Kept free of FastAPI concerns so it can be reused by API routes, the session loop, and tests.
"""
