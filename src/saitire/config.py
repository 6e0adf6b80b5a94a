from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

import yaml


class ConfigError(ValueError):
    pass


@dataclass(frozen=True)
class AppConfig:
    timezone: str
    language: str
    author: str


@dataclass(frozen=True)
class PathsConfig:
    data_dir: str
    run_reports_dir: str
    editors_file: str


@dataclass(frozen=True)
class StorageConfig:
    backend: str
    s3_bucket: str
    s3_prefix: str
    s3_region: str
    s3_endpoint_url: str


@dataclass(frozen=True)
class HttpConfig:
    timeout_seconds: int
    user_agent: str
    max_retries: int
    backoff_seconds: int


@dataclass(frozen=True)
class ProviderConfig:
    type: str
    base_url: str
    model: str
    api_key: str | None
    timeout_s: int


@dataclass(frozen=True)
class LlmConfig:
    writer: ProviderConfig
    structured: ProviderConfig
    write_temperature: float
    structured_temperature: float
    max_tokens_article: int
    max_tokens_structured: int


@dataclass(frozen=True)
class FeedsConfig:
    trends_rss_url: str
    news_rss_template: str


@dataclass(frozen=True)
class PublishConfig:
    limit: int
    news_per_trend: int
    topic_mode_weights: dict[str, float]
    article_type_weights: dict[str, float]
    max_investigations_per_day: int
    investigation_max_chunks: int
    source_summary_max_bullets: int
    source_text_max_chars: int
    source_text_min_chars: int
    max_published: int
    max_pending: int


@dataclass(frozen=True)
class ReviewConfig:
    human_review: bool
    force_all_to_pending: bool
    score_below: int
    approve_min_score: int
    webhook_url: str
    dashboard_url: str


@dataclass(frozen=True)
class FeaturedConfig:
    max_featured: int
    ttl_hours: int
    categories: list[str]


@dataclass(frozen=True)
class FeedbackConfig:
    lookback_lines: int
    editor_cap: int
    category_cap: int
    global_cap: int


@dataclass(frozen=True)
class CommentsConfig:
    allow_public: bool
    max_per_article: int
    max_depth: int
    max_children_per_parent: int
    name_max: int
    text_max: int
    text_min: int


@dataclass(frozen=True)
class ImagesConfig:
    mode: str
    search_url: str
    page_size: int


@dataclass(frozen=True)
class AdminConfig:
    password: str | None
    token_secret: str | None
    token_ttl_hours: int


@dataclass(frozen=True)
class Config:
    app: AppConfig
    paths: PathsConfig
    storage: StorageConfig
    http: HttpConfig
    llm: LlmConfig
    feeds: FeedsConfig
    publish: PublishConfig
    review: ReviewConfig
    featured: FeaturedConfig
    feedback: FeedbackConfig
    comments: CommentsConfig
    images: ImagesConfig
    admin: AdminConfig


DEFAULT_CONFIG: dict[str, Any] = {
    "app": {
        "timezone": "Europe/Amsterdam",
        "language": "nl",
        "author": "SAItire Redactie",
    },
    "paths": {
        "data_dir": "./data",
        "run_reports_dir": "./data/reports",
        "editors_file": "",
    },
    "storage": {
        "backend": "local",
        "s3_bucket": "",
        "s3_prefix": "",
        "s3_region": "",
        "s3_endpoint_url": "",
    },
    "http": {
        "timeout_seconds": 20,
        "user_agent": "SAItire/0.1 (+satire pipeline)",
        "max_retries": 1,
        "backoff_seconds": 2,
    },
    "llm": {
        "timeout_seconds": 45,
        "write_temperature": 0.9,
        "structured_temperature": 0.2,
        "max_tokens_article": 2200,
        "max_tokens_structured": 700,
        "writer": {
            "type": "anthropic",
            "base_url": "",
            "model": "claude-sonnet-4-20250514",
            "api_key_env": "ANTHROPIC_API_KEY",
        },
        "structured": {
            "type": "openai_compatible",
            "base_url": "",
            "model": "gpt-4.1-mini",
            "api_key_env": "OPENAI_API_KEY",
        },
    },
    "feeds": {
        "trends_rss_url": "https://trends.google.com/trending/rss?geo=NL",
        "news_rss_template": "https://news.google.com/rss/search?q={q}&hl=nl&gl=NL&ceid=NL:nl",
    },
    "publish": {
        "limit": 3,
        "news_per_trend": 3,
        "topic_mode_weights": {"trending": 0.7, "societal_pulse": 0.3},
        "article_type_weights": {"normal": 0.5, "short": 0.5, "investigation": 0.08},
        "max_investigations_per_day": 1,
        "investigation_max_chunks": 3,
        "source_summary_max_bullets": 4,
        "source_text_max_chars": 4000,
        "source_text_min_chars": 300,
        "max_published": 2000,
        "max_pending": 500,
    },
    "review": {
        "human_review": True,
        "force_all_to_pending": True,
        "score_below": 85,
        "approve_min_score": 75,
        "webhook_url": "",
        "dashboard_url": "",
    },
    "featured": {
        "max_featured": 4,
        "ttl_hours": 12,
        "categories": ["politiek", "tech", "buitenland"],
    },
    "feedback": {
        "lookback_lines": 400,
        "editor_cap": 6,
        "category_cap": 6,
        "global_cap": 6,
    },
    "comments": {
        "allow_public": True,
        "max_per_article": 300,
        "max_depth": 3,
        "max_children_per_parent": 60,
        "name_max": 40,
        "text_max": 1200,
        "text_min": 3,
    },
    "images": {
        "mode": "web",
        "search_url": "https://api.openverse.org/v1/images/",
        "page_size": 5,
    },
    "admin": {
        "token_ttl_hours": 12,
    },
}

VALID_PROVIDER_TYPES = {"openai_compatible", "anthropic"}
VALID_STORAGE_BACKENDS = {"local", "s3"}
VALID_IMAGE_MODES = {"gen", "web", "off"}


def load_config(path: str | None = None, env: Mapping[str, str] | None = None) -> Config:
    env = os.environ if env is None else env
    config_path = path or env.get("SAITIRE_CONFIG_PATH")
    overrides: dict[str, Any] = {}
    if config_path:
        file_path = Path(config_path)
        if not file_path.exists():
            raise ConfigError(f"config file not found: {config_path}")
        try:
            loaded = yaml.safe_load(file_path.read_text(encoding="utf-8"))
        except yaml.YAMLError as exc:
            raise ConfigError(f"invalid yaml in {config_path}: {exc}") from exc
        if loaded is None:
            loaded = {}
        if not isinstance(loaded, dict):
            raise ConfigError("config root must be a mapping")
        overrides = loaded
    cfg = _deep_merge(_deep_copy(DEFAULT_CONFIG), overrides)
    _apply_env_overrides(cfg, env)
    errors = validate_config(cfg)
    if errors:
        raise ConfigError("Invalid config: " + "; ".join(errors))
    return _build_config(cfg, env)


def validate_config(cfg: dict[str, Any]) -> list[str]:
    errors: list[str] = []
    _validate_dict(cfg, DEFAULT_CONFIG, "config", errors)
    if errors:
        return errors
    for role in ("writer", "structured"):
        provider_type = cfg["llm"][role]["type"]
        if provider_type not in VALID_PROVIDER_TYPES:
            errors.append(f"config.llm.{role}.type must be one of {sorted(VALID_PROVIDER_TYPES)}")
    if cfg["storage"]["backend"] not in VALID_STORAGE_BACKENDS:
        errors.append(f"config.storage.backend must be one of {sorted(VALID_STORAGE_BACKENDS)}")
    if cfg["storage"]["backend"] == "s3" and not cfg["storage"]["s3_bucket"]:
        errors.append("config.storage.s3_bucket is required for the s3 backend")
    if cfg["images"]["mode"] not in VALID_IMAGE_MODES:
        errors.append(f"config.images.mode must be one of {sorted(VALID_IMAGE_MODES)}")
    if cfg["publish"]["limit"] < 1:
        errors.append("config.publish.limit must be >= 1")
    for key in ("topic_mode_weights", "article_type_weights"):
        if not any(float(w) > 0 for w in cfg["publish"][key].values()):
            errors.append(f"config.publish.{key} needs at least one positive weight")
    return errors


def _validate_dict(
    value: dict[str, Any], schema: dict[str, Any], path: str, errors: list[str]
) -> None:
    if not isinstance(value, dict):
        errors.append(f"{path} must be an object")
        return
    for key in schema.keys():
        if key not in value:
            errors.append(f"missing {path}.{key}")
    for key in value.keys():
        if key not in schema:
            errors.append(f"unknown {path}.{key}")
    for key, default in schema.items():
        if key not in value:
            continue
        _validate_value(value[key], default, f"{path}.{key}", errors)


def _validate_value(value: Any, default: Any, path: str, errors: list[str]) -> None:
    if isinstance(default, dict):
        if not isinstance(value, dict):
            errors.append(f"{path} must be an object")
            return
        _validate_dict(value, default, path, errors)
        return
    if isinstance(default, list):
        if not isinstance(value, list):
            errors.append(f"{path} must be a list")
            return
        for item in value:
            if not isinstance(item, str):
                errors.append(f"{path} must be a list of strings")
                break
        return
    if isinstance(default, bool):
        if not isinstance(value, bool):
            errors.append(f"{path} must be a boolean")
        return
    if isinstance(default, int):
        if not isinstance(value, int) or isinstance(value, bool):
            errors.append(f"{path} must be an integer")
        return
    if isinstance(default, float):
        if not isinstance(value, (int, float)) or isinstance(value, bool):
            errors.append(f"{path} must be a number")
        return
    if isinstance(default, str):
        if not isinstance(value, str):
            errors.append(f"{path} must be a string")
        return


def _apply_env_overrides(cfg: dict[str, Any], env: Mapping[str, str]) -> None:
    data_dir = env.get("SAITIRE_DATA_DIR")
    if data_dir:
        cfg["paths"]["data_dir"] = data_dir
        cfg["paths"]["run_reports_dir"] = os.path.join(data_dir, "reports")
    backend = env.get("SAITIRE_STORAGE")
    if backend:
        cfg["storage"]["backend"] = backend
    bucket = env.get("SAITIRE_S3_BUCKET")
    if bucket:
        cfg["storage"]["s3_bucket"] = bucket
    webhook = env.get("SAITIRE_REVIEW_WEBHOOK_URL")
    if webhook:
        cfg["review"]["webhook_url"] = webhook
    dashboard = env.get("SAITIRE_REVIEW_DASHBOARD_URL")
    if dashboard:
        cfg["review"]["dashboard_url"] = dashboard


def _build_provider(cfg: dict[str, Any], timeout_s: int, env: Mapping[str, str]) -> ProviderConfig:
    api_key_env = str(cfg.get("api_key_env") or "")
    return ProviderConfig(
        type=str(cfg.get("type")),
        base_url=str(cfg.get("base_url") or ""),
        model=str(cfg.get("model")),
        api_key=env.get(api_key_env) or None if api_key_env else None,
        timeout_s=timeout_s,
    )


def _build_config(cfg: dict[str, Any], env: Mapping[str, str]) -> Config:
    app_cfg = cfg["app"]
    paths_cfg = cfg["paths"]
    storage_cfg = cfg["storage"]
    http_cfg = cfg["http"]
    llm_cfg = cfg["llm"]
    publish_cfg = cfg["publish"]
    review_cfg = cfg["review"]
    featured_cfg = cfg["featured"]
    feedback_cfg = cfg["feedback"]
    comments_cfg = cfg["comments"]
    images_cfg = cfg["images"]

    timeout_s = int(llm_cfg["timeout_seconds"])
    llm = LlmConfig(
        writer=_build_provider(llm_cfg["writer"], timeout_s, env),
        structured=_build_provider(llm_cfg["structured"], timeout_s, env),
        write_temperature=float(llm_cfg["write_temperature"]),
        structured_temperature=float(llm_cfg["structured_temperature"]),
        max_tokens_article=int(llm_cfg["max_tokens_article"]),
        max_tokens_structured=int(llm_cfg["max_tokens_structured"]),
    )

    return Config(
        app=AppConfig(
            timezone=str(app_cfg["timezone"]),
            language=str(app_cfg["language"]),
            author=str(app_cfg["author"]),
        ),
        paths=PathsConfig(
            data_dir=str(paths_cfg["data_dir"]),
            run_reports_dir=str(paths_cfg["run_reports_dir"]),
            editors_file=str(paths_cfg["editors_file"]),
        ),
        storage=StorageConfig(
            backend=str(storage_cfg["backend"]),
            s3_bucket=str(storage_cfg["s3_bucket"]),
            s3_prefix=str(storage_cfg["s3_prefix"]),
            s3_region=str(storage_cfg["s3_region"]),
            s3_endpoint_url=str(storage_cfg["s3_endpoint_url"]),
        ),
        http=HttpConfig(
            timeout_seconds=int(http_cfg["timeout_seconds"]),
            user_agent=str(http_cfg["user_agent"]),
            max_retries=int(http_cfg["max_retries"]),
            backoff_seconds=int(http_cfg["backoff_seconds"]),
        ),
        llm=llm,
        feeds=FeedsConfig(
            trends_rss_url=str(cfg["feeds"]["trends_rss_url"]),
            news_rss_template=str(cfg["feeds"]["news_rss_template"]),
        ),
        publish=PublishConfig(
            limit=int(publish_cfg["limit"]),
            news_per_trend=int(publish_cfg["news_per_trend"]),
            topic_mode_weights={k: float(v) for k, v in publish_cfg["topic_mode_weights"].items()},
            article_type_weights={
                k: float(v) for k, v in publish_cfg["article_type_weights"].items()
            },
            max_investigations_per_day=int(publish_cfg["max_investigations_per_day"]),
            investigation_max_chunks=int(publish_cfg["investigation_max_chunks"]),
            source_summary_max_bullets=int(publish_cfg["source_summary_max_bullets"]),
            source_text_max_chars=int(publish_cfg["source_text_max_chars"]),
            source_text_min_chars=int(publish_cfg["source_text_min_chars"]),
            max_published=int(publish_cfg["max_published"]),
            max_pending=int(publish_cfg["max_pending"]),
        ),
        review=ReviewConfig(
            human_review=bool(review_cfg["human_review"]),
            force_all_to_pending=bool(review_cfg["force_all_to_pending"]),
            score_below=int(review_cfg["score_below"]),
            approve_min_score=int(review_cfg["approve_min_score"]),
            webhook_url=str(review_cfg["webhook_url"]),
            dashboard_url=str(review_cfg["dashboard_url"]),
        ),
        featured=FeaturedConfig(
            max_featured=int(featured_cfg["max_featured"]),
            ttl_hours=int(featured_cfg["ttl_hours"]),
            categories=list(featured_cfg["categories"]),
        ),
        feedback=FeedbackConfig(
            lookback_lines=int(feedback_cfg["lookback_lines"]),
            editor_cap=int(feedback_cfg["editor_cap"]),
            category_cap=int(feedback_cfg["category_cap"]),
            global_cap=int(feedback_cfg["global_cap"]),
        ),
        comments=CommentsConfig(
            allow_public=bool(comments_cfg["allow_public"]),
            max_per_article=int(comments_cfg["max_per_article"]),
            max_depth=int(comments_cfg["max_depth"]),
            max_children_per_parent=int(comments_cfg["max_children_per_parent"]),
            name_max=int(comments_cfg["name_max"]),
            text_max=int(comments_cfg["text_max"]),
            text_min=int(comments_cfg["text_min"]),
        ),
        images=ImagesConfig(
            mode=str(images_cfg["mode"]),
            search_url=str(images_cfg["search_url"]),
            page_size=int(images_cfg["page_size"]),
        ),
        admin=AdminConfig(
            password=env.get("SAITIRE_ADMIN_PASSWORD") or None,
            token_secret=env.get("SAITIRE_TOKEN_SECRET") or None,
            token_ttl_hours=int(cfg["admin"]["token_ttl_hours"]),
        ),
    )


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
    return base


def _deep_copy(value: dict[str, Any]) -> dict[str, Any]:
    return json.loads(json.dumps(value))
