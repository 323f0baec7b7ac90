from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path

_LANGUAGES_FILE = Path(__file__).with_name("languages.json")


@dataclass(frozen=True)
class Language:
    english: str
    native: str


def load_languages(path: Path | None = None) -> list[Language]:
    """Load the bundled language table, sorted by English name."""
    with open(path or _LANGUAGES_FILE, encoding="utf-8") as f:
        raw = json.load(f)
    languages = [Language(english=item["english"], native=item["native"]) for item in raw]
    return sorted(languages, key=lambda lang: lang.english)


def language_choices(languages: list[Language]) -> tuple[list[str], list[str]]:
    """Return (values, value labels) for a language picker."""
    return [lang.english for lang in languages], [lang.native for lang in languages]
