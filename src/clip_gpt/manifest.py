from __future__ import annotations

from clip_gpt.app_config import (
    DEFAULT_API_BASE,
    DEFAULT_API_VERSION,
    DEFAULT_CUSTOM_PROMPT,
    DEFAULT_LANGUAGES,
    DEFAULT_MODEL,
)
from clip_gpt.chat_client import SUPPORTED_API_TYPES
from clip_gpt.invocation import ONE_TIME_ACTIONS, ActionKind
from clip_gpt.languages import Language, language_choices, load_languages
from clip_gpt.prompts import PromptLanguageMode

_ACTION_METADATA: dict[ActionKind, tuple[str, str]] = {
    ActionKind.CHAT: (
        "ChatGPTx: do what you want (click while holding shift(⇧) to force clear the history for this app)",
        "symbol:arrow.up.message.fill",
    ),
    ActionKind.CUSTOM: ("ChatGPTx: custom", "symbol:c.square.fill"),
    ActionKind.WRITING: ("ChatGPTx: writing", "symbol:w.square.fill"),
    ActionKind.DIALOGUE: ("ChatGPTx: dialogue", "symbol:d.square.fill"),
    ActionKind.TRANSLATE: ("ChatGPTx: translate text", "symbol:t.square.fill"),
    ActionKind.SPELL: ("ChatGPTx: spell text", "symbol:s.square.fill"),
}


def build_actions() -> list[dict]:
    """Action declarations shown by the host, one per ActionKind."""
    actions: list[dict] = []
    for kind in ActionKind:
        title, icon = _ACTION_METADATA[kind]
        requirements = ["text"]
        if not kind.is_stateful:
            requirements.append(f"option-{kind.value}Enabled=1")
        actions.append({"identifier": kind.value, "title": title, "icon": icon, "requirements": requirements})
    return actions


def build_options(languages: list[Language] | None = None) -> list[dict]:
    """Option-menu declarations for the host's settings panel."""
    if languages is None:
        languages = load_languages()
    values, labels = language_choices(languages)

    options: list[dict] = [
        {
            "identifier": "apiType",
            "label": "API Type",
            "type": "multiple",
            "default value": "openai",
            "values": list(SUPPORTED_API_TYPES),
        },
        {
            "identifier": "apiBase",
            "label": "API Base URL",
            "description": "For Azure: https://{resource-name}.openai.azure.com/openai/deployments/{deployment-id}",
            "type": "string",
            "default value": DEFAULT_API_BASE,
        },
        {"identifier": "apiKey", "label": "API Key", "type": "string", "default value": ""},
        {"identifier": "model", "label": "Model", "type": "string", "default value": DEFAULT_MODEL},
        {
            "identifier": "apiVersion",
            "label": "API Version (Azure only)",
            "type": "string",
            "default value": DEFAULT_API_VERSION,
        },
        {
            "identifier": "temperature",
            "label": "Sampling Temperature",
            "type": "string",
            "description": ">=0, <=2. Higher values will result in a more random output, and vice versa.",
            "default value": "1",
        },
        {"identifier": "CustomPrompt", "label": "CustomPrompt", "type": "string", "default value": DEFAULT_CUSTOM_PROMPT},
        {
            "identifier": "promptLanguageMode",
            "label": "Prompt Language",
            "type": "multiple",
            "description": "'language' writes the selected language into the prompt; 'fixed' ignores it.",
            "default value": PromptLanguageMode.FIXED.value,
            "values": [mode.value for mode in PromptLanguageMode],
        },
        {
            "identifier": "opinionedActions",
            "label": "❤ OPINIONED ACTIONS",
            "type": "heading",
            "description": "Click while holding shift(⇧) to use the secondary language.",
        },
    ]

    for kind in ONE_TIME_ACTIONS:
        name = kind.value
        primary, secondary = DEFAULT_LANGUAGES[kind]
        options.extend([
            {"identifier": name, "label": f"{name.capitalize()} Texts", "type": "heading"},
            {"identifier": f"{name}Enabled", "label": "Enable", "type": "boolean", "inset": True},
            {
                "identifier": f"{name}PrimaryLanguage",
                "label": "Primary",
                "type": "multiple",
                "default value": primary,
                "values": values,
                "value labels": labels,
                "inset": True,
            },
            {
                "identifier": f"{name}SecondaryLanguage",
                "label": "Secondary",
                "type": "multiple",
                "default value": secondary,
                "values": values,
                "value labels": labels,
                "inset": True,
            },
        ])
    return options
