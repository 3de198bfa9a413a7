"""
Rendering of runtime data into prompt text blocks.
"""
from typing import Dict, List, Optional
import re

from agent_runtime.domain.models.agent_state import Actor, Goal, Media, Memory, State, now_ms

_PLACEHOLDER = re.compile(r"{{(\w+)}}")

ATTACHMENT_WINDOW_MS = 60 * 60 * 1000
HIDDEN_ATTACHMENT_TEXT = "[Hidden]"


def add_header(header: str, body: str) -> str:
    """Prefix ``body`` with ``header``; an empty body renders nothing"""
    if not body:
        return ""
    return f"{header}\n{body}\n" if header else f"{body}\n"


def compose_context(template: str, state: State) -> str:
    """Substitute ``{{key}}`` placeholders; unknown keys become empty"""
    values = state.template_values()
    return _PLACEHOLDER.sub(lambda match: values.get(match.group(1), ""), template)


def format_goals_as_string(goals: List[Goal]) -> str:
    goal_strings = []
    for goal in goals:
        objectives = "\n".join(
            f"- {'[x]' if objective.completed else '[ ]'} {objective.description} "
            f"{' (DONE)' if objective.completed else ' (IN PROGRESS)'}"
            for objective in goal.objectives
        )
        goal_strings.append(f"Goal: {goal.name}\nid: {goal.id}\nObjectives:\n{objectives}")
    return "\n".join(goal_strings)


def format_actors(actors: List[Actor]) -> str:
    lines = []
    for actor in actors:
        line = actor.name
        if actor.details.tagline:
            line += f": {actor.details.tagline}"
        if actor.details.summary:
            line += f"\n{actor.details.summary}"
        lines.append(line)
    return "\n".join(lines)


def format_timestamp(created_at: int, now: Optional[int] = None) -> str:
    """Relative, human readable age of an epoch-ms timestamp"""

    diff = abs((now if now is not None else now_ms()) - created_at)
    if diff < 60_000:
        return "just now"

    minutes = diff // 60_000
    hours = minutes // 60
    days = hours // 24
    if minutes < 60:
        return f"{minutes} minute{'s' if minutes != 1 else ''} ago"
    if hours < 24:
        return f"{hours} hour{'s' if hours != 1 else ''} ago"
    return f"{days} day{'s' if days != 1 else ''} ago"


def format_messages(messages: List[Memory], actors: List[Actor]) -> str:
    """Transcript of ``messages`` (given newest first), oldest line first"""

    names = {actor.id: actor.name for actor in actors}
    lines = []
    for message in reversed(messages):
        if not message.user_id:
            continue

        content = message.content
        attachment_string = ""
        if content.attachments:
            rendered = ", ".join(f"[{media.id} - {media.title} ({media.url})]" for media in content.attachments)
            attachment_string = f" (Attachments: {rendered})"

        action_string = f" ({content.action})" if content.action and content.action != "null" else ""
        lines.append(
            f"({format_timestamp(message.created_at)}) [{message.user_id[-5:]}] "
            f"{names.get(message.user_id, 'Unknown User')}: {content.text}{attachment_string}{action_string}"
        )
    return "\n".join(lines)


def format_posts(messages: List[Memory], actors: List[Actor], conversation_header: bool = True) -> str:
    """Messages grouped by room, most recently active room first"""

    by_id = {actor.id: actor for actor in actors}
    rooms: Dict[str, List[Memory]] = {}
    for message in messages:
        if message.room_id:
            rooms.setdefault(message.room_id, []).append(message)

    for room_messages in rooms.values():
        room_messages.sort(key=lambda m: m.created_at)

    ordered = sorted(rooms.items(), key=lambda item: item[1][-1].created_at, reverse=True)

    blocks = []
    for room_id, room_messages in ordered:
        posts = []
        for message in room_messages:
            if not message.user_id:
                continue
            actor = by_id.get(message.user_id)
            reply = f"\nIn reply to: {message.content.in_reply_to}" if message.content.in_reply_to else ""
            posts.append(
                f"Name: {actor.name if actor else 'Unknown User'} (@{actor.username if actor else 'unknown'})\n"
                f"ID: {message.id}{reply}\n"
                f"Date: {format_timestamp(message.created_at)}\n"
                f"Text:\n{message.content.text}"
            )
        header = f"Conversation: {room_id[-5:]}\n" if conversation_header else ""
        blocks.append(header + "\n\n".join(posts))

    return "\n\n".join(blocks)


def format_attachments(attachments: List[Media]) -> str:
    return "\n".join(
        f"ID: {media.id}\n"
        f"Name: {media.title}\n"
        f"URL: {media.url}\n"
        f"Type: {media.source}\n"
        f"Description: {media.description}\n"
        f"Text: {media.text}\n"
        for media in attachments
    )


def resolve_attachments(
    recent_messages: List[Memory],
    fallback: List[Media],
    window_ms: int = ATTACHMENT_WINDOW_MS,
    redact: bool = True
) -> List[Media]:
    """Attachments visible to the model, oldest message first.

    The window is anchored at the newest message that carries attachments.
    With ``redact`` the attachments of older messages are kept with their
    text hidden; otherwise they are dropped. Stored memories are never
    modified, only copies of their attachments. Without any attachment in
    history, ``fallback`` is returned.
    """
    anchor = next((m for m in recent_messages if m.content.attachments), None)
    if anchor is None:
        return list(fallback)

    window_start = anchor.created_at - window_ms
    resolved: List[Media] = []
    for message in reversed(recent_messages):
        if message.created_at >= window_start:
            resolved.extend(media.model_copy() for media in message.content.attachments)
        elif redact:
            resolved.extend(
                media.model_copy(update={"text": HIDDEN_ATTACHMENT_TEXT})
                for media in message.content.attachments
            )
    return resolved
