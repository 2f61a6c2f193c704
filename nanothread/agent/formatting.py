"""Text normalisation for prompt content."""

import re
from datetime import datetime
from typing import Optional

_USER_MENTION_RE = re.compile(r"<@!?\d+>")
_ROLE_MENTION_RE = re.compile(r"<@&\d+>")
_CUSTOM_EMOJI_RE = re.compile(r"<a?:(\w+):\d+>")
_BRACKET_MATH_RE = re.compile(r"(\[[^\]]*\\[^\]]*\])")


def sanitise_input(text: str) -> str:
    """Drop user and role mentions; reduce custom emoji to their name."""
    text = _USER_MENTION_RE.sub("", text)
    text = _ROLE_MENTION_RE.sub("", text)
    text = _CUSTOM_EMOJI_RE.sub(r"\1", text)
    return text.strip()


def fix_mentions(text: str) -> str:
    """Unify mention syntax to ``<@id>``, then remove stray ``@`` characters."""
    text = re.sub(r"<@!?(\d+)>", r"<@\1>", text)
    text = re.sub(r"<(\d+)>", r"<@\1>", text)
    return text.replace("@", "")


def fix_math_formatting(text: str) -> str:
    """Wrap bracketed TeX such as ``[\\frac{a}{b}]`` in inline code."""
    return _BRACKET_MATH_RE.sub(lambda m: f"`{m.group(1)}`", text)


def clean_turn_text(text: str) -> str:
    return fix_math_formatting(fix_mentions(sanitise_input(text)))


def strip_bot_mention(text: str, bot_user_id: str) -> str:
    return re.sub(rf"<@!?{re.escape(bot_user_id)}>", "", text).strip()


def system_metadata(markdown_guide: str = "", now: Optional[datetime] = None) -> str:
    """Current time line followed by the formatting guide."""
    now = now or datetime.now()
    meta = f"_Current time: {now:%b %d, %Y, %H:%M:%S}_"
    if markdown_guide:
        meta += f"\n\n{markdown_guide}"
    return meta
