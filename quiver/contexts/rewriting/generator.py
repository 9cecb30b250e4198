"""
Text generation port.

A TextGenerator is any callable taking (system_prompt, user_prompt) and
returning candidate text. llm_text_generator() adapts an LLMProvider; tests
and offline runs pass plain functions.
"""

from typing import Callable

from quiver.utils.llm import LLMProvider

TextGenerator = Callable[[str, str], str]

_STRIP_CHARS = " \t\n\"'`-*•"


def clean_candidate(text: str) -> str:
    """
    Normalize a raw generation into a single bullet.

    Keeps the first non-empty line and strips quotes and list markers.
    """
    for line in (text or "").splitlines():
        stripped = line.strip(_STRIP_CHARS)
        if stripped:
            return stripped
    return ""


def llm_text_generator(provider: LLMProvider) -> TextGenerator:
    """
    Wrap an LLMProvider as a TextGenerator.

    Example:
        from quiver.utils.llm import get_provider

        generator = llm_text_generator(get_provider("anthropic"))
        text = generator(system_prompt, user_prompt)
    """

    def generate(system_prompt: str, user_prompt: str) -> str:
        return provider.generate(system_prompt, user_prompt).content

    generate.__name__ = f"generate[{provider.name}]"
    return generate
