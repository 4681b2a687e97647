"""Readable-article extraction from HTML pages."""

from bookmark_archiver.extractor.main_content import ArticleExtractor, ExtractedArticle

__all__ = [
    "ArticleExtractor",
    "ExtractedArticle",
]
