from __future__ import annotations

from enum import Enum

from clip_gpt.invocation import ActionKind

SYSTEM_PROMPT = "Be precise and concise."


class PromptLanguageMode(str, Enum):
    # Instructions are fixed; the configured language is ignored.
    FIXED = "fixed"
    # The selected language is written into the instruction.
    LANGUAGE = "language"


_FIXED_PROMPTS: dict[ActionKind, str] = {
    ActionKind.WRITING: (
        "You are a experienced writing coach. Make my writing better, clearer and concise for slides "
        "and document. Please provide the revised text directly. Here is my text:"
    ),
    ActionKind.DIALOGUE: (
        "You are a experienced writing coach. Make my writing better for a casual audience. "
        "Please provide the revised text directly. Here is my text:"
    ),
    ActionKind.TRANSLATE: (
        "You are a experienced writing coach and English translator. Translate my writing to English "
        "and make it better for document. Please provide the revised text directly. Here is my text:"
    ),
    ActionKind.SPELL: (
        "You are a experienced writing coach. Make my writing better while correct the spell or "
        "grammar error. Please provide the revised text only. Here is my text:"
    ),
}

_LANGUAGE_PROMPTS: dict[ActionKind, str] = {
    ActionKind.WRITING: (
        "You are an experienced writing coach. Make my writing better, clearer and concise for slides "
        "and document, and reply in {language}. Please provide the revised text directly. Here is my text:"
    ),
    ActionKind.DIALOGUE: (
        "You are an experienced writing coach. Make my writing better for a casual audience, "
        "and reply in {language}. Please provide the revised text directly. Here is my text:"
    ),
    ActionKind.TRANSLATE: (
        "You are an experienced writing coach and translator. Translate my writing into {language} "
        "and make it better for document. Please provide the revised text directly. Here is my text:"
    ),
    ActionKind.SPELL: (
        "You are an experienced writing coach. Make my writing better while correct the spell or "
        "grammar error, and reply in {language}. Please provide the revised text only. Here is my text:"
    ),
}


def resolve_prompt(
    action: ActionKind,
    *,
    custom_prompt: str = "",
    language: str | None = None,
    mode: PromptLanguageMode = PromptLanguageMode.FIXED,
) -> str:
    """Return the instruction that precedes the selected text for a one-time action.

    ``custom`` returns the configured prompt verbatim. The other one-time actions
    use a built-in template which mentions ``language`` only in
    ``PromptLanguageMode.LANGUAGE``.
    """
    if action is ActionKind.CHAT:
        raise ValueError("The chat action has no single-shot prompt")
    if action is ActionKind.CUSTOM:
        return custom_prompt

    if mode is PromptLanguageMode.LANGUAGE:
        if not language:
            raise ValueError(f"A language is required to build the {action.value} prompt")
        return _LANGUAGE_PROMPTS[action].format(language=language)
    return _FIXED_PROMPTS[action]
