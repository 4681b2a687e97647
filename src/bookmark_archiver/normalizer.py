"""Language tagging and shaping of archived documents."""

import logging
from collections.abc import Callable

from langdetect import DetectorFactory, LangDetectException, detect_langs  # type: ignore[import-untyped]
from pydantic import BaseModel

from bookmark_archiver.extractor.main_content import ExtractedArticle
from bookmark_archiver.sources.base import Bookmark

logger = logging.getLogger(__name__)

# Languages the downstream full-text index has analyzers for.
SUPPORTED_LANGUAGES = frozenset({
    "en", "ar", "da", "nl", "fi", "fr", "hu", "it",
    "de", "fa", "pt", "ro", "ru", "es", "sv", "tr",
})
DEFAULT_LANGUAGE = "en"

# Fields stored under a "<lang>_" prefix.
NAMESPACED_FIELDS = ("title", "html", "text", "excerpt")

Detector = Callable[[str], tuple[str, float]]

# Make detection deterministic across runs.
DetectorFactory.seed = 0


def detect_language(text: str) -> tuple[str, float]:
    """Return ``(language_code, confidence)`` for ``text``.

    Returns ``("", 0.0)`` when langdetect finds nothing to go on.
    """
    try:
        results = detect_langs(text)
    except LangDetectException:
        return "", 0.0
    if not results:
        return "", 0.0
    top = results[0]
    return top.lang, float(top.prob)


class LanguageTagger:
    """Pick one supported language code for a document.

    Candidate fields are examined in order (text, excerpt, title). Every
    non-empty field replaces the previous choice, so the last non-empty
    field decides: its detected language when confidence exceeds the
    threshold, the default language otherwise.
    """

    def __init__(
        self,
        detector: Detector = detect_language,
        threshold: float = 0.95,
        default: str = DEFAULT_LANGUAGE,
        supported: frozenset[str] = SUPPORTED_LANGUAGES,
    ):
        self.detector = detector
        self.threshold = threshold
        self.default = default
        self.supported = supported

    def tag(self, text: str, excerpt: str, title: str) -> str:
        lang = ""
        for field in (text, excerpt, title):
            if not field:
                continue
            detected, confidence = self.detector(field)
            if confidence > self.threshold:
                lang = detected
            else:
                lang = self.default

        if not lang or lang not in self.supported:
            if lang:
                logger.debug("unsupported language %r, using %r", lang, self.default)
            lang = self.default
        return lang


class ArchivedDocument(BaseModel):
    """A normalized bookmark ready for storage."""

    url: str
    folder: str = ""
    lang: str = DEFAULT_LANGUAGE
    title: str = ""
    html: str = ""
    text: str = ""
    excerpt: str = ""
    author: str = ""
    site_name: str = ""

    def to_record(self) -> dict[str, str]:
        """Return the stored field map, with language-namespaced text fields."""
        record = {
            f"{self.lang}_title": self.title,
            f"{self.lang}_html": self.html,
            f"{self.lang}_text": self.text,
            f"{self.lang}_excerpt": self.excerpt,
        }
        record.update({
            "lang": self.lang,
            "author": self.author,
            "siteName": self.site_name,
            "url": self.url,
            "folder": self.folder,
        })
        return record

    @classmethod
    def from_record(cls, record: dict[str, str]) -> "ArchivedDocument":
        lang = record.get("lang") or DEFAULT_LANGUAGE
        return cls(
            url=record.get("url", ""),
            folder=record.get("folder", ""),
            lang=lang,
            author=record.get("author", ""),
            site_name=record.get("siteName", ""),
            **{name: record.get(f"{lang}_{name}", "") for name in NAMESPACED_FIELDS},
        )


def build_document(
    bookmark: Bookmark, article: ExtractedArticle, lang: str
) -> ArchivedDocument:
    """Combine a bookmark, its extracted article and its language tag."""
    return ArchivedDocument(
        url=bookmark.url,
        folder=bookmark.folder,
        lang=lang,
        title=article.title or bookmark.title,
        html=article.html or "",
        text=article.text or "",
        excerpt=article.excerpt or "",
        author=article.author or "",
        site_name=article.site_name or "",
    )
