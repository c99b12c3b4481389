"""
Custom exceptions for the tutor chat backend.

These exceptions are intentionally simple and descriptive.
They are used across:

  - core/chat/        (prompt assembly)
  - core/api/         (LLM client wrapper)
  - runtime/api/      (HTTP routes)

None of them is meant to reach a learner: each is caught at the component
boundary that raised it and turned into a safe fallback value or a
structured failure.
"""


class PromptAssemblyError(Exception):
    """
    Raised when a prompt section cannot be built (bad learner data,
    malformed history entry, template substitution failure).

    PromptBuilder.build_prompt catches it and returns the fallback prompt.
    """

    def __init__(self, section, details=None):
        self.section = section
        self.details = details or "Prompt section could not be built."
        msg = f"Failed to assemble prompt section '{section}': {self.details}"
        super().__init__(msg)


class LLMClientError(Exception):
    """
    Raised inside the LLM client wrapper when the provider call fails or
    returns something that cannot be parsed.

    The wrapper converts it into an error-flagged AIResponse.
    """

    def __init__(self, message, status_code=None):
        self.status_code = status_code
        super().__init__(message)


class SessionNotFoundError(Exception):
    """
    Raised when a read-only session query names a session that does not
    exist or has expired.
    """

    def __init__(self, session_id):
        self.session_id = session_id
        super().__init__(f"Session not found: {session_id}")
