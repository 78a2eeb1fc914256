import json
import os
import logging

logger = logging.getLogger(__name__)

DEFAULT_LANG = "en"
FALLBACK_LANG = "zh"


def _lang_file(lang_dir, lang):
    return os.path.join(lang_dir, f"lang_{lang}.json")


def _read_lang_file(lang_dir, lang):
    lang_file = _lang_file(lang_dir, lang)
    if not os.path.exists(lang_file):
        # English and Chinese are shipped; anything else falls back to the other one
        fallback = FALLBACK_LANG if lang == DEFAULT_LANG else DEFAULT_LANG
        lang_file = _lang_file(lang_dir, fallback)
    if not os.path.exists(lang_file):
        logger.warning(f"No language file found in {lang_dir} for '{lang}'")
        return {}
    with open(lang_file, "r", encoding="utf-8") as f:
        return json.load(f)


class Translator:
    def __init__(self, lang_dir, default_lang=DEFAULT_LANG):
        self.lang_dir = lang_dir
        self.default_lang = default_lang
        self.current_lang = default_lang
        self.translations = {}
        self.load_translations()

    def load_translations(self):
        try:
            self.translations = _read_lang_file(self.lang_dir, self.current_lang)
        except (OSError, ValueError) as e:
            logger.error(f"Failed to load translations: {e}")
            self.translations = {}

    def set_language(self, lang):
        self.current_lang = lang
        self.load_translations()

    def tr(self, key, default_text, **kwargs):
        val = self.translations.get(key, default_text)
        if kwargs:
            try:
                return val.format(**kwargs)
            except (KeyError, IndexError, ValueError):
                return val
        return val


# Global instance
_translator = None


def init_translator(base_dir):
    global _translator
    lang_dir = os.path.join(base_dir, "i18n")
    _translator = Translator(lang_dir)


def tr(key, default_text, **kwargs):
    if _translator:
        return _translator.tr(key, default_text, **kwargs)
    return default_text.format(**kwargs) if kwargs else default_text


def set_lang(lang):
    if _translator:
        _translator.set_language(lang)


def get_translation_dict(lang):
    """
    Returns the raw translation dictionary for the given language code.
    Used by the web view to load translations dynamically.
    """
    if not _translator:
        return {}
    try:
        return _read_lang_file(_translator.lang_dir, lang)
    except (OSError, ValueError) as e:
        logger.error(f"Error loading dict for {lang}: {e}")
        return {}
