#!/usr/bin/env python3
"""
Tutor chat CLI

Developer tooling around the chat pipeline.

Commands:

1) serve
   - Start the HTTP server (uvicorn runtime.api.server:app).

2) prompt
   - Print the prompt that would be sent to the model for a message,
     topic and context. No model call is made.

3) normalize
   - Run the Markdown normalizer over a file and print the result.

4) policies
   - Print the context policy table.

5) ask
   - Run one full chat turn against the configured model and print the
     reply (requires LLM_API_KEY).
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import List, Optional

# Ensure project root is on sys.path when running as a script
ROOT_DIR = Path(__file__).resolve().parent.parent
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from configs.llm_config import load_topic_keywords
from configs.settings import settings
from core.chat.markdown import normalize_markdown
from core.chat.policies import CONTEXT_POLICIES, ContextTag
from core.chat.prompt_builder import PromptBuilder


CONTEXT_CHOICES = [tag.value for tag in ContextTag]


def _prompt_builder() -> PromptBuilder:
    return PromptBuilder(topic_keywords=load_topic_keywords(settings.topic_keywords_file))


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def cmd_serve(host: str, port: int, reload: bool) -> None:
    import uvicorn

    print(f"[tutor-chat] Starting server on http://{host}:{port} (env={settings.app_env})")
    uvicorn.run("runtime.api.server:app", host=host, port=port, reload=reload)


def cmd_prompt(
    message: str,
    topic: str,
    context: str,
    learner_name: Optional[str],
    first_message: bool,
) -> None:
    """Print the assembled prompt for a single message."""
    builder = _prompt_builder()
    learner = {"name": learner_name} if learner_name else None
    print(
        builder.build_prompt(
            message=message,
            topic=topic,
            context=context,
            learner=learner,
            history=None,
            is_first_message=first_message,
        )
    )


def cmd_normalize(path: str) -> None:
    """Print the normalized Markdown for a file."""
    src = Path(path)
    if not src.is_file():
        raise FileNotFoundError(f"Markdown file not found: {path}")
    print(normalize_markdown(src.read_text(encoding="utf-8")))


def cmd_policies() -> None:
    """Print the context policy table as JSON."""
    table = {}
    for tag, policy in CONTEXT_POLICIES.items():
        table[tag.value] = {
            "temperature": policy.temperature,
            "max_output_tokens": policy.max_output_tokens,
            "auto_continue": {
                "enabled": policy.auto_continue.enabled,
                "max_rounds": policy.auto_continue.max_rounds,
                "continuation_max_tokens": policy.continuation_cap,
            },
        }
    print(json.dumps(table, indent=2))


def cmd_ask(message: str, topic: str, context: str) -> int:
    """Run one chat turn against the configured model."""
    from core.chat.boundary import TopicBoundaryValidator
    from runtime.agents.chat_orchestrator import ChatOrchestrator
    from runtime.api.server import build_llm_client
    from runtime.models.api_models import ChatErrorResponse, ChatRequest
    from runtime.store.session_store import SessionStore

    keywords = load_topic_keywords(settings.topic_keywords_file)
    orchestrator = ChatOrchestrator(
        session_store=SessionStore(ttl_seconds=settings.session_ttl_seconds),
        llm_client=build_llm_client(),
        prompt_builder=PromptBuilder(topic_keywords=keywords),
        boundary_validator=TopicBoundaryValidator(keywords),
    )
    request = ChatRequest(message=message, topic=topic, context=context, is_first_message=True)
    result = asyncio.run(orchestrator.handle_chat(request))

    if isinstance(result, ChatErrorResponse):
        print(f"[tutor-chat] ✗ {result.message}", file=sys.stderr)
        print(result.reply)
        return 1

    print(result.reply)
    print(
        f"\n[tutor-chat] ✓ {result.metadata.response_time}ms, "
        f"{result.metadata.continuation_rounds} continuation round(s), "
        f"boundary confidence {result.metadata.boundary_check.confidence:.2f}",
        file=sys.stderr,
    )
    return 0


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Tutor chat CLI")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # serve
    p_serve = subparsers.add_parser("serve", help="Start the HTTP server")
    p_serve.add_argument("--host", default="127.0.0.1")
    p_serve.add_argument("--port", type=int, default=3000)
    p_serve.add_argument("--reload", action="store_true", help="Reload on code changes")

    # prompt
    p_prompt = subparsers.add_parser("prompt", help="Print the assembled prompt for a message")
    p_prompt.add_argument("message", help="Learner message")
    p_prompt.add_argument("--topic", required=True, help="Current topic slug")
    p_prompt.add_argument("--context", choices=CONTEXT_CHOICES, default="general")
    p_prompt.add_argument("--learner-name", default=None)
    p_prompt.add_argument(
        "--first-message",
        action="store_true",
        help="Treat as the first message of the conversation",
    )

    # normalize
    p_normalize = subparsers.add_parser("normalize", help="Normalize a Markdown file")
    p_normalize.add_argument("path", help="Path to a Markdown/text file")

    # policies
    subparsers.add_parser("policies", help="Print the context policy table")

    # ask
    p_ask = subparsers.add_parser("ask", help="Run one chat turn against the model")
    p_ask.add_argument("message", help="Learner message")
    p_ask.add_argument("--topic", required=True, help="Current topic slug")
    p_ask.add_argument("--context", choices=CONTEXT_CHOICES, default="general")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    command: str = args.command

    if command == "serve":
        cmd_serve(host=args.host, port=args.port, reload=args.reload)
    elif command == "prompt":
        cmd_prompt(
            message=args.message,
            topic=args.topic,
            context=args.context,
            learner_name=args.learner_name,
            first_message=args.first_message,
        )
    elif command == "normalize":
        cmd_normalize(path=args.path)
    elif command == "policies":
        cmd_policies()
    elif command == "ask":
        return cmd_ask(message=args.message, topic=args.topic, context=args.context)
    else:
        parser.error(f"Unknown command: {command}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
