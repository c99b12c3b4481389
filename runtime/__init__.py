"""
Runtime package for the tutor chat server.

This package contains:
- API layer (FastAPI server + routes)
- Agents (chat orchestration: prompt -> model -> continuation -> validation)
- Stores (sessions, event logs)
- Models (Pydantic schemas for requests and sessions)
"""
