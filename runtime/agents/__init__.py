"""
Agents used by the chat runtime.

ChatOrchestrator:

- receives a validated chat request
- updates the learner's session
- calls the LLM (with bounded auto-continuation and topic redirect)
- returns a structured reply or failure
"""
