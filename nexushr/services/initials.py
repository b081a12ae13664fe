import logging
import re

from nexushr.core.config import AISettings
from nexushr.core.exceptions import AIError
from nexushr.services.openrouter_client import call_openrouter

logger = logging.getLogger(__name__)

_NON_LETTERS = re.compile(r"[^a-z]")

PROMPT = (
    'Convert the Chinese name "{name}" into its Pinyin initials. '
    "Return ONLY the lowercase initials. Do not add spaces, numbers or symbols. "
    "Strictly just the first letter of each Pinyin syllable. "
    'Example: "李茹" -> "lr". "张三丰" -> "zsf".'
)


def fallback_initials(name: str) -> str:
    return name[:2].lower()


def pinyin_initials(name: str, settings: AISettings) -> str:
    """
    Lowercase Pinyin initials of a name, e.g. "李茹" -> "lr".

    The model is asked first; without a key, with the kill switch on, or when
    the answer is unusable, the first two characters of the name are used.
    """
    if not name:
        return ""
    if settings.kill_switch or not settings.openrouter_api_key:
        return fallback_initials(name)

    try:
        answer = call_openrouter(settings, [{"role": "user", "content": PROMPT.format(name=name)}])
    except AIError as e:
        logger.warning(f"Initials lookup failed, using fallback: {e.message}")
        return fallback_initials(name)

    initials = _NON_LETTERS.sub("", answer.strip().lower())
    return initials or fallback_initials(name)
