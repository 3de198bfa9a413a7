"""
Randomised sampling of persona material into prompt blocks.
"""
from typing import Any, Dict, List, Optional, Sequence
import random
import re

from agent_runtime.domain.models.character import Character
from .formatting import add_header

EXAMPLE_NAMES = [
    "Alice", "Bob", "Charlie", "Dana", "Eve", "Frank", "Grace", "Heidi", "Ivan", "Judy",
    "Karl", "Laura", "Mallory", "Niaj", "Olivia", "Peggy", "Quentin", "Rupert", "Sybil", "Trent",
    "Ursula", "Victor", "Walter", "Xena", "Yusuf", "Zoe",
]

_USER_PLACEHOLDER = re.compile(r"{{user(\d+)}}")


def sample(items: Sequence[Any], count: int, rng: Optional[random.Random] = None) -> List[Any]:
    """Up to ``count`` distinct items in random order"""
    rng = rng or random
    items = list(items)
    return rng.sample(items, min(count, len(items)))


def example_names(count: int = 5, rng: Optional[random.Random] = None) -> List[str]:
    return [(rng or random).choice(EXAMPLE_NAMES) for _ in range(count)]


def fill_user_placeholders(text: str, names: List[str]) -> str:
    """Replace ``{{user1}}`` .. ``{{userN}}`` with ``names``; unknown indexes are left as is"""

    def replace(match: "re.Match[str]") -> str:
        index = int(match.group(1)) - 1
        return names[index] if 0 <= index < len(names) else match.group(0)

    return _USER_PLACEHOLDER.sub(replace, text)


def format_topics(character: Character, rng: Optional[random.Random] = None) -> str:
    topics = sample(character.topics, 5, rng)
    if not topics:
        return ""
    if len(topics) == 1:
        joined = topics[0]
    else:
        joined = ", ".join(topics[:-1]) + " and " + topics[-1]
    return f"{character.name} is interested in {joined}"


def format_message_examples(character: Character, count: int = 5, rng: Optional[random.Random] = None) -> str:
    conversations = []
    for conversation in sample(character.message_examples, count, rng):
        names = example_names(rng=rng)
        conversations.append("\n".join(
            fill_user_placeholders(f"{line.user}: {line.content.text}", names)
            for line in conversation
        ))
    return "\n\n".join(conversations)


def compose_persona(character: Character, rng: Optional[random.Random] = None) -> Dict[str, Any]:
    """Persona fields of a state; different on each call"""
    rng = rng or random

    bio = character.bio
    if isinstance(bio, list):
        bio = " ".join(sample(bio, 3, rng))

    post_examples = "\n".join(sample(character.post_examples, 50, rng))
    message_examples = format_message_examples(character, rng=rng)

    style = character.style
    message_directions = "\n".join([*style.all, *style.chat])
    post_directions = "\n".join([*style.all, *style.post])

    return {
        "bio": bio or "",
        "lore": "\n".join(sample(character.lore, 10, rng)),
        "adjective": rng.choice(character.adjectives) if character.adjectives else "",
        "topic": rng.choice(character.topics) if character.topics else None,
        "topics": format_topics(character, rng),
        "character_post_examples": add_header(f"# Example Posts for {character.name}", post_examples)
        if post_examples.replace("\n", "") else "",
        "character_message_examples": add_header(f"# Example Conversations for {character.name}", message_examples)
        if message_examples.replace("\n", "") else "",
        "message_directions": add_header(f"# Message Directions for {character.name}", message_directions),
        "post_directions": add_header(f"# Post Directions for {character.name}", post_directions),
    }
