from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from urllib.parse import urlencode

from .config import ImagesConfig
from .ingest import FetchError, TextFetcher
from .models import Article, ArticleImage
from .text import clean_text
from .utils import log_event

logger = logging.getLogger("saitire.images")


@dataclass(frozen=True)
class ImageRequest:
    title: str
    trend: str
    category: str
    source_headline: str
    slug: str


class ImageProvider(ABC):
    name = "base"

    @abstractmethod
    def find(self, request: ImageRequest) -> ArticleImage | None:
        raise NotImplementedError


class OpenverseImageProvider(ImageProvider):
    """Openly licensed photos from the Openverse search API."""

    name = "openverse"

    def __init__(self, fetch: TextFetcher, search_url: str, page_size: int = 5) -> None:
        self._fetch = fetch
        self._search_url = search_url
        self._page_size = page_size

    def _queries(self, request: ImageRequest) -> list[str]:
        candidates = [request.trend, request.source_headline, request.title, request.category]
        queries = []
        for candidate in candidates:
            query = " ".join(clean_text(candidate).split()[:6])
            if query and query not in queries:
                queries.append(query)
        return queries

    def find(self, request: ImageRequest) -> ArticleImage | None:
        for query in self._queries(request):
            params = urlencode({"q": query, "page_size": self._page_size, "mature": "false"})
            raw = self._fetch(f"{self._search_url}?{params}")
            try:
                payload = json.loads(raw)
            except json.JSONDecodeError as exc:
                raise ValueError(f"openverse_invalid_json: {exc}") from exc
            if not isinstance(payload, dict):
                continue
            for result in payload.get("results") or []:
                image = _image_from_result(result, query)
                if image is not None:
                    return image
        return None


def _image_from_result(result: dict, query: str) -> ArticleImage | None:
    original = result.get("url")
    if not original:
        return None
    thumb = result.get("thumbnail") or original
    license_code = str(result.get("license") or "").upper()
    version = str(result.get("license_version") or "")
    short = f"CC {license_code} {version}".strip() if license_code else ""
    if license_code in {"CC0", "PDM"}:
        short = license_code
    creator = clean_text(result.get("creator")) or None
    return ArticleImage(
        provider="openverse",
        query=query,
        file_title=clean_text(result.get("title")),
        urls={
            "original": original,
            "large": original,
            "medium": original,
            "small": thumb,
            "thumb": thumb,
        },
        source_page_url=result.get("foreign_landing_url"),
        license={"short": short, "url": result.get("license_url")},
        author=creator,
        credit=clean_text(result.get("source")) or None,
        attribution_text=clean_text(result.get("attribution")) or None,
    )


def get_image_provider(cfg: ImagesConfig, fetch: TextFetcher) -> ImageProvider | None:
    if cfg.mode == "off":
        return None
    if cfg.mode == "web":
        return OpenverseImageProvider(fetch, cfg.search_url, cfg.page_size)
    # "gen" needs an external generation backend wired in by the caller.
    log_event(logger, logging.WARNING, "image_provider_unavailable", mode=cfg.mode)
    return None


def attach_image(
    provider: ImageProvider | None,
    article: Article,
    trend: str,
) -> bool:
    """Best effort: failures are logged and leave the image fields empty."""
    if provider is None:
        return False
    request = ImageRequest(
        title=article.title,
        trend=trend,
        category=article.category,
        source_headline=article.source_headline or "",
        slug=article.slug,
    )
    try:
        image = provider.find(request)
    except (FetchError, ValueError) as exc:
        log_event(logger, logging.WARNING, "image_lookup_failed", slug=article.slug, error=str(exc))
        return False
    if image is None or not image.urls.get("original"):
        log_event(logger, logging.INFO, "image_not_found", slug=article.slug)
        return False
    article.attach_image(image)
    log_event(
        logger,
        logging.INFO,
        "image_attached",
        slug=article.slug,
        provider=image.provider,
        query=image.query,
    )
    return True
