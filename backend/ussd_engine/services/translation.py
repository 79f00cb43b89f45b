"""
Translation Table — key x language lookup for every menu text.
Loaded once from resources/translations.yaml.
"""
from functools import lru_cache
from importlib import resources
from typing import Dict, Optional

import yaml

from ussd_engine.constants import Language

TRANSLATIONS_RESOURCE = "translations.yaml"


def load_table(text: Optional[str] = None) -> Dict[str, Dict[str, str]]:
    """Parse a translation table; defaults to the packaged resource."""
    if text is None:
        text = resources.files("ussd_engine.resources").joinpath(TRANSLATIONS_RESOURCE).read_text("utf-8")
    table = yaml.safe_load(text) or {}
    return {key: dict(entries or {}) for key, entries in table.items()}


class Translator:
    """Pure lookup with fallback to the raw key."""

    def __init__(self, table: Dict[str, Dict[str, str]]):
        self._table = table

    def t(self, key: str, language, **params) -> str:
        lang = language.value if isinstance(language, Language) else str(language)
        text = self._table.get(key, {}).get(lang)
        if text is None:
            return key
        return text.format(**params) if params else text

    def bilingual(self, key: str) -> str:
        """English line then Kinyarwanda line, for messages shown before a language is known."""
        return f"{self.t(key, Language.EN)}\n{self.t(key, Language.RW)}"

    def has(self, key: str, language) -> bool:
        lang = language.value if isinstance(language, Language) else str(language)
        return lang in self._table.get(key, {})


@lru_cache()
def get_translator() -> Translator:
    """Cached translator over the packaged table."""
    return Translator(load_table())
