"""
Storage abstractions for the chat runtime.

Includes:
- SessionStore: ephemeral in-memory session storage with sliding TTL
- LogStore: append-only JSONL event logging for debugging / analysis
"""
