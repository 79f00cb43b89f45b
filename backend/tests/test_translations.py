"""Tests for the translation table."""
from ussd_engine.constants import Language
from ussd_engine.services.translation import Translator, get_translator, load_table


class TestTranslationTable:
    def test_every_key_has_both_languages(self):
        table = load_table()
        missing = [key for key, entries in table.items() if set(entries) != {"en", "rw"}]
        assert missing == []

    def test_lookup_by_language(self):
        t = get_translator()
        assert t.t("welcome", Language.EN) == "Welcome"
        assert t.t("welcome", Language.RW) == "Murakaza neza"
        assert t.t("welcome", "rw") == "Murakaza neza"

    def test_unknown_key_falls_back_to_key(self):
        assert get_translator().t("no_such_key", Language.EN) == "no_such_key"

    def test_missing_language_falls_back_to_key(self):
        t = Translator({"only_en": {"en": "English only"}})
        assert t.t("only_en", Language.RW) == "only_en"
        assert not t.has("only_en", Language.RW)
        assert t.has("only_en", Language.EN)

    def test_params_are_formatted(self):
        text = get_translator().t("goal_list_item", Language.EN, index=2, description="Buy goats", progress=40)
        assert text == "2. Buy goats... (40%)"

    def test_bilingual_is_english_then_kinyarwanda(self):
        text = get_translator().bilingual("not_registered")
        assert text.split("\n") == [
            "Not registered. Please contact support.",
            "Ntabwo wiyandikishije. Hamagara support.",
        ]

    def test_load_table_from_text(self):
        table = load_table("greeting:\n  en: Hi\n  rw: Muraho\n")
        assert Translator(table).t("greeting", Language.RW) == "Muraho"
