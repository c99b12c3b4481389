# Prompt templates used by the chat pipeline.


PROMPT_LEARNER_CONTEXT_HEADER = "LEARNER CONTEXT:"

PROMPT_PERSONALIZE = (
    "- Personalize your response appropriately using the student's name when helpful."
)


PROMPT_TOPIC_BOUNDARY = """TOPIC BOUNDARY: Stay focused on "{topic}".
Key concepts to emphasize: {keywords}.
If the question goes outside this scope, politely redirect to relevant aspects of {topic}."""


PROMPT_CONVERSATION_CONTEXT = """RECENT CONVERSATION CONTEXT:
{transcript}

Consider this context when responding to the new question."""


PROMPT_QUESTION = "Current Student Question: {message}"

PROMPT_CLOSING = (
    "Please provide a helpful, educational response that stays within the topic scope."
)


PROMPT_FALLBACK = """{system_prompt}

Topic: {topic}
Student Question: {message}"""


PROMPT_CONTINUATION = """You were answering a student's question about "{topic}" and your reply was cut off by the length limit.

Here is what you have written so far:

{partial}

Continue the reply exactly where it stopped. Do NOT repeat any content that is already written above, do not restart with a greeting or introduction, and stay within the topic "{topic}"."""


PROMPT_REDIRECT = (
    "The student asked about something outside the {topic} topic. "
    "Politely redirect them back to {topic} concepts and ask what specific "
    "aspect of {topic} they'd like to explore instead."
)


# Opening messages a client can send on behalf of the learner when a chat
# is triggered from a course page.
INITIAL_MESSAGES = {
    "help": "I need help understanding the {topic} concepts. Can you provide step-by-step guidance?",
    "learn_more": "I want to learn more about {topic} in detail with practical examples.",
    "quiz_failed": "I answered incorrectly on the quiz about {topic}. Can you help me understand the correct approach?",
    "practice": "I want to practice {topic} with hands-on examples. Can you guide me through some exercises?",
    "summary": "Can you provide a comprehensive summary of the {topic} concepts and key points?",
    "general": "Hello! I need assistance with {topic}.",
}
