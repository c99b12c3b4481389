"""
Pydantic models used by the chat runtime.

Split into:
- session_models: Session + Turn + LearnerData + SessionStats
- api_models: HTTP request/response schemas
"""
