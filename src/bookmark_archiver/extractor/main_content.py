"""Readable-article extraction from HTML pages."""

import logging

import trafilatura
from bs4 import BeautifulSoup
from pydantic import BaseModel
from readability import Document  # type: ignore[import-untyped]

from bookmark_archiver.config import ExtractorConfig

logger = logging.getLogger(__name__)


class ExtractedArticle(BaseModel):
    """Article fields pulled out of a page. Every field may be missing."""

    title: str | None = None
    html: str | None = None
    text: str | None = None
    excerpt: str | None = None
    author: str | None = None
    site_name: str | None = None
    extraction_method: str | None = None


class ArticleExtractor:
    """Extract the readable article and its metadata from raw HTML.

    readability-lxml provides the article body; trafilatura supplies the
    metadata (author, site name, description) and is the fallback body
    extractor when readability finds nothing. Instances are not safe for
    concurrent use.
    """

    def __init__(self, config: ExtractorConfig | None = None):
        self.config = config or ExtractorConfig()

    def parse(self, html: str, url: str) -> ExtractedArticle:
        """Extract article fields from ``html`` fetched from ``url``."""
        if not html or not html.strip():
            return ExtractedArticle()

        article = self._extract_with_readability(html)
        if article is None or not article.text:
            fallback = self._extract_with_trafilatura(html, url)
            if fallback is not None:
                article = fallback
        if article is None:
            article = ExtractedArticle()

        self._apply_metadata(article, html, url)

        if not article.excerpt and article.text:
            article.excerpt = self._make_excerpt(article.text)

        return article

    def _extract_with_readability(self, html: str) -> ExtractedArticle | None:
        """Extract using readability-lxml."""
        try:
            doc = Document(html)
            content_html = doc.summary(html_partial=True)
            title = doc.short_title() or doc.title()

            if content_html:
                soup = BeautifulSoup(content_html, "lxml")
                text = soup.get_text(separator=" ", strip=True)

                return ExtractedArticle(
                    title=title or None,
                    html=content_html,
                    text=text or None,
                    extraction_method="readability",
                )
        except Exception:
            logger.debug("Readability extraction failed", exc_info=True)

        return None

    def _extract_with_trafilatura(self, html: str, url: str) -> ExtractedArticle | None:
        """Extract using trafilatura."""
        try:
            content_html = trafilatura.extract(
                html,
                url=url,
                include_comments=False,
                include_tables=self.config.include_tables,
                include_links=self.config.include_links,
                output_format="html",
            )
            if not content_html:
                return None

            text = trafilatura.extract(
                html,
                url=url,
                include_comments=False,
                output_format="txt",
            )
            return ExtractedArticle(
                html=content_html,
                text=text,
                extraction_method="trafilatura",
            )
        except Exception:
            logger.debug("Trafilatura extraction failed", exc_info=True)

        return None

    def _apply_metadata(self, article: ExtractedArticle, html: str, url: str) -> None:
        """Fill title, author, site name and excerpt from page metadata."""
        try:
            metadata = trafilatura.extract_metadata(html, default_url=url)
        except Exception:
            logger.debug("Metadata extraction failed", exc_info=True)
            metadata = None

        if metadata is None:
            if not article.title:
                article.title = self._title_from_soup(html)
            return

        if not article.title and metadata.title:
            article.title = metadata.title
        if metadata.author:
            article.author = metadata.author
        if metadata.sitename:
            article.site_name = metadata.sitename
        if metadata.description:
            article.excerpt = metadata.description

    @staticmethod
    def _title_from_soup(html: str) -> str | None:
        soup = BeautifulSoup(html, "lxml")
        title_tag = soup.find("title")
        if title_tag:
            return title_tag.get_text(strip=True) or None
        return None

    def _make_excerpt(self, text: str) -> str:
        """First paragraph of the text, cut at a word boundary."""
        first = text.strip().split("\n", 1)[0].strip()
        limit = self.config.excerpt_length
        if limit <= 0 or len(first) <= limit:
            return first
        cut = first[:limit].rsplit(" ", 1)[0]
        return cut + "…"
