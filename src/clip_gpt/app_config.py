from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping

from clip_gpt.errors import ConfigurationError
from clip_gpt.invocation import ONE_TIME_ACTIONS, ActionKind
from clip_gpt.prompts import PromptLanguageMode

DEFAULT_API_BASE = "https://api.openai.com/v1"
DEFAULT_API_VERSION = "2023-07-01-preview"
DEFAULT_MODEL = "gpt-4-0125-preview"
DEFAULT_CUSTOM_PROMPT = "翻译为中文："

# (primary, secondary) language per one-time action.
DEFAULT_LANGUAGES: dict[ActionKind, tuple[str, str]] = {
    ActionKind.CUSTOM: ("English", "Chinese Simplified"),
    ActionKind.WRITING: ("English", "Chinese Simplified"),
    ActionKind.DIALOGUE: ("English", "Chinese Simplified"),
    ActionKind.TRANSLATE: ("Chinese Simplified", "English"),
    ActionKind.SPELL: ("Chinese Simplified", "English"),
}

_API_KEY_ENV_VARS = {
    "openai": "OPENAI_API_KEY",
    "azure": "AZURE_OPENAI_API_KEY",
}


@dataclass
class ActionOptions:
    enabled: bool = True
    primary_language: str = "English"
    secondary_language: str = "Chinese Simplified"

    def language(self, alternate: bool) -> str:
        return self.secondary_language if alternate else self.primary_language


def _default_action_options() -> dict[ActionKind, ActionOptions]:
    return {
        action: ActionOptions(primary_language=primary, secondary_language=secondary)
        for action, (primary, secondary) in DEFAULT_LANGUAGES.items()
    }


@dataclass
class AppConfig:
    api_type: str = "openai"
    api_base: str = DEFAULT_API_BASE
    api_key: str = ""
    api_version: str = DEFAULT_API_VERSION
    model: str = DEFAULT_MODEL
    temperature: str = "1"
    custom_prompt: str = DEFAULT_CUSTOM_PROMPT
    prompt_language_mode: PromptLanguageMode = PromptLanguageMode.FIXED
    actions: dict[ActionKind, ActionOptions] = field(default_factory=_default_action_options)
    proxy: str | None = None
    timeout_seconds: float = 35.0
    retry_delay_seconds: float = 0.0
    log_level: str = "INFO"
    log_consumers: list | None = None

    def action_options(self, action: ActionKind) -> ActionOptions:
        if action not in self.actions:
            self.actions[action] = ActionOptions()
        return self.actions[action]

    def is_enabled(self, action: ActionKind) -> bool:
        if action is ActionKind.CHAT:
            return True
        return self.action_options(action).enabled


def load_json_config(path: Path | None = None) -> dict:
    config_path = path or Path.cwd() / "config.json"
    if config_path.exists():
        with open(config_path, encoding="utf-8") as f:
            try:
                return json.load(f)
            except json.JSONDecodeError as ex:
                raise ConfigurationError(f"{config_path} is not valid JSON: {ex}") from None
    return {}


def _to_bool(value: object, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"1", "true", "yes", "on"}:
            return True
        if lowered in {"0", "false", "no", "off"}:
            return False
    return bool(value)


def _to_float(config: dict, key: str, default: float) -> float:
    value = config.get(key, default)
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{key} must be a number, got {value!r}") from None


def _to_prompt_language_mode(value: object) -> PromptLanguageMode:
    try:
        return PromptLanguageMode(str(value).strip().lower())
    except ValueError:
        supported = ", ".join(mode.value for mode in PromptLanguageMode)
        raise ConfigurationError(f"PromptLanguageMode must be one of {supported}, got {value!r}") from None


def _parse_actions(raw: dict) -> dict[ActionKind, ActionOptions]:
    actions = _default_action_options()
    for action in ONE_TIME_ACTIONS:
        section = raw.get(action.value) or {}
        options = actions[action]
        options.enabled = _to_bool(section.get("Enabled"), default=options.enabled)
        options.primary_language = section.get("PrimaryLanguage", options.primary_language)
        options.secondary_language = section.get("SecondaryLanguage", options.secondary_language)
    return actions


def parse_app_config(config: dict, environ: Mapping[str, str] | None = None) -> AppConfig:
    environ = os.environ if environ is None else environ
    api_type = str(config.get("ApiType", "openai")).strip().lower()
    api_key = str(config.get("ApiKey", "")).strip()
    if not api_key and api_type in _API_KEY_ENV_VARS:
        api_key = environ.get(_API_KEY_ENV_VARS[api_type], "")

    return AppConfig(
        api_type=api_type,
        api_base=str(config.get("ApiBase", DEFAULT_API_BASE)).rstrip("/"),
        api_key=api_key,
        api_version=str(config.get("ApiVersion", DEFAULT_API_VERSION)),
        model=str(config.get("Model", DEFAULT_MODEL)),
        temperature=str(config.get("Temperature", "1")),
        custom_prompt=str(config.get("CustomPrompt", DEFAULT_CUSTOM_PROMPT)),
        prompt_language_mode=_to_prompt_language_mode(config.get("PromptLanguageMode", "fixed")),
        actions=_parse_actions(config.get("Actions", {})),
        proxy=str(config.get("Proxy", "")).strip() or None,
        timeout_seconds=_to_float(config, "TimeoutSeconds", 35.0),
        retry_delay_seconds=_to_float(config, "RetryDelaySeconds", 0.0),
        log_level=config.get("LogLevel", "INFO"),
        log_consumers=config.get("LogConsumers"),
    )


# PopClip hands extension options to shell scripts as POPCLIP_OPTION_<IDENTIFIER>.
_POPCLIP_OPTION_KEYS = {
    "APITYPE": "ApiType",
    "APIBASE": "ApiBase",
    "APIKEY": "ApiKey",
    "APIVERSION": "ApiVersion",
    "MODEL": "Model",
    "TEMPERATURE": "Temperature",
    "CUSTOMPROMPT": "CustomPrompt",
    "PROMPTLANGUAGEMODE": "PromptLanguageMode",
}


def apply_popclip_options(config: dict, environ: Mapping[str, str]) -> dict:
    """Overlay POPCLIP_OPTION_* environment values onto a raw config dict."""
    merged = dict(config)
    actions = {name: dict(section) for name, section in merged.get("Actions", {}).items()}
    prefix = "POPCLIP_OPTION_"
    for name, value in environ.items():
        if not name.startswith(prefix):
            continue
        identifier = name[len(prefix):]
        if identifier in _POPCLIP_OPTION_KEYS:
            merged[_POPCLIP_OPTION_KEYS[identifier]] = value
            continue
        for action in ONE_TIME_ACTIONS:
            head = action.value.upper()
            for suffix, key in (
                ("ENABLED", "Enabled"),
                ("PRIMARYLANGUAGE", "PrimaryLanguage"),
                ("SECONDARYLANGUAGE", "SecondaryLanguage"),
            ):
                if identifier == head + suffix:
                    actions.setdefault(action.value, {})[key] = value
    if actions:
        merged["Actions"] = actions
    return merged
