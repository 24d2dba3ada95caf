"""HTTP practice-session service (FastAPI).

HOW: models.py holds the pydantic wire schemas, sessions.py the session
registry, app.py the FastAPI app and the run_api() entry point.
"""
