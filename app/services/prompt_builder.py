"""Prompt builder: system prompt and model message list for a chat turn."""

from typing import List, Optional, Sequence

from app.models.message import ChatMessage, RequestHints


# Global system prompt (default behavior)
GLOBAL_SYSTEM_PROMPT = """You are a friendly assistant! Keep your responses concise and helpful.

Guidelines:
- If you don't know something, say so
- Use the tools available to you when they help answer the request
- When a tool call fails, tell the user what went wrong in plain words
- Never invent the result of a tool call"""

# Hints for the third-party integrations, keyed by tool name prefix
INTEGRATION_HINTS = {
    "GMAIL_": "Gmail: read, search, draft and send email on the user's behalf.",
    "GOOGLECALENDAR_": "Google Calendar: list, create and update calendar events.",
    "SLACK_": "Slack: read channels and post messages.",
    "TODOIST_": "Todoist: manage tasks and projects.",
    "GITHUB_": "GitHub: work with repositories, issues and pull requests.",
    "NOTION_": "Notion: search and edit pages and databases.",
    "LINEAR_": "Linear: manage issues and projects.",
}

# Chat history sent to the model, most recent messages
MAX_HISTORY_MESSAGES = 50


def build_request_prompt(hints: Optional[RequestHints]) -> str:
    if hints is None:
        return ""
    return (
        "About the origin of user's request:\n"
        f"- lat: {hints.latitude}\n"
        f"- lon: {hints.longitude}\n"
        f"- city: {hints.city}\n"
        f"- country: {hints.country}"
    )


def build_tools_prompt(available_tools: Sequence[str]) -> str:
    if not available_tools:
        return ""

    integrations = [
        hint for prefix, hint in INTEGRATION_HINTS.items()
        if any(name.startswith(prefix) for name in available_tools)
    ]
    lines = ["You can call these tools: " + ", ".join(available_tools)]
    if integrations:
        lines.append("Connected integrations:")
        lines.extend(f"- {hint}" for hint in integrations)
    return "\n".join(lines)


def build_system_prompt(
    selected_chat_model: str,
    request_hints: Optional[RequestHints] = None,
    available_tools: Sequence[str] = (),
) -> str:
    """
    Build the system prompt.

    Order:
    1. GLOBAL_SYSTEM_PROMPT
    2. Request origin hints (if present)
    3. Tool list and integration hints (if any tools are active)
    """
    layers = [GLOBAL_SYSTEM_PROMPT, build_request_prompt(request_hints)]
    if selected_chat_model == "chat-model-reasoning":
        layers.append("Think step by step before answering.")
    layers.append(build_tools_prompt(available_tools))
    return "\n\n".join(layer for layer in layers if layer)


def build_messages(
    system_prompt: str,
    history: List[ChatMessage],
    user_message: ChatMessage,
) -> List[dict]:
    """
    Build the model message list.

    Only text parts reach the model; messages without text are skipped.
    History is truncated to the most recent MAX_HISTORY_MESSAGES.

    Returns:
        List of message dicts: [{"role": "system"|"user"|"assistant", "content": "..."}]
    """
    messages = [{"role": "system", "content": system_prompt}]

    selected_history = [m for m in history if m.id != user_message.id][-MAX_HISTORY_MESSAGES:]
    for msg in selected_history:
        text = msg.text
        if not text:
            continue
        role = "assistant" if msg.role == "assistant" else "user"
        messages.append({"role": role, "content": text})

    messages.append({"role": "user", "content": user_message.text})
    return messages
