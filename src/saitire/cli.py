from __future__ import annotations

import argparse
import logging
import random
from typing import Callable

from .blobstore import BlobStore, StorageBindingError, get_blob_store
from .config import Config, ConfigError, load_config
from .editors import load_editors
from .images import get_image_provider
from .ingest import make_fetcher
from .llm import AIContext, LLMClient, RepairError
from .notify import make_notifier
from .publish import PublishOptions, run_publish, write_run_report
from .services import review_service
from .services.profile_service import update_prompt_profile
from .utils import configure_logging, json_dumps, log_event

REVIEW_LIST_LIMIT = 20


def _load(args: argparse.Namespace, logger: logging.Logger) -> tuple[Config, BlobStore] | None:
    try:
        config = load_config(args.config)
    except ConfigError as exc:
        log_event(logger, logging.ERROR, "config_error", error=str(exc))
        return None
    try:
        store = get_blob_store(config)
    except (StorageBindingError, ValueError) as exc:
        log_event(logger, logging.ERROR, "storage_error", error=str(exc))
        return None
    return config, store


def _cmd_publish(args: argparse.Namespace, logger: logging.Logger) -> int:
    loaded = _load(args, logger)
    if loaded is None:
        return 1
    config, store = loaded

    options = PublishOptions(
        force=args.force,
        dry_run=args.dry_run,
        limit=args.limit,
        news_per_trend=args.news_per_trend,
        force_investigation=args.investigation,
        no_review=args.no_review,
        no_llm=args.no_llm,
    )
    fetch = make_fetcher(config.http)
    ai = AIContext(client=LLMClient(config.llm, logger), config=config, logger=logger)
    try:
        editors = load_editors(config.paths.editors_file or None)
        report = run_publish(
            ai,
            store,
            fetch,
            options,
            rng=random.Random(),
            editors=editors,
            image_provider=get_image_provider(config.images, fetch),
            notifier=make_notifier(config.review, logger),
        )
    except ConfigError as exc:
        log_event(logger, logging.ERROR, "config_error", error=str(exc))
        return 1
    except Exception as exc:  # noqa: BLE001
        logger.exception("publish_failed")
        log_event(logger, logging.ERROR, "publish_failed", error=str(exc))
        return 1

    path = write_run_report(config.paths.run_reports_dir, report)
    log_event(
        logger,
        logging.INFO,
        "run_complete",
        written=report.written,
        published=report.published,
        pending=report.pending,
        skipped=sum(report.skipped.values()),
        report=path,
    )
    return 0


def _format_row(index: int, item: dict) -> str:
    score = item.get("review_score")
    return (
        f"{index}) [{score if score is not None else '-'}] {item.get('category') or '-'} | "
        f"{item.get('title') or ''} ({item.get('slug') or ''})"
    )


def _cmd_review_list(args: argparse.Namespace, logger: logging.Logger) -> int:
    loaded = _load(args, logger)
    if loaded is None:
        return 1
    _, store = loaded
    pending = review_service.list_pending(store)
    if not pending:
        print("No pending items.")
        return 0
    for index, item in enumerate(pending[:REVIEW_LIST_LIMIT]):
        print(_format_row(index, item))
    if len(pending) > REVIEW_LIST_LIMIT:
        print(f"... {len(pending) - REVIEW_LIST_LIMIT} more")
    return 0


def _with_pending_item(
    args: argparse.Namespace,
    logger: logging.Logger,
    action: Callable[[Config, BlobStore, dict], int],
) -> int:
    loaded = _load(args, logger)
    if loaded is None:
        return 1
    config, store = loaded
    try:
        item = review_service.pending_at(store, args.index)
    except review_service.NotFoundError as exc:
        log_event(logger, logging.ERROR, "invalid_index", index=args.index, error=str(exc))
        return 1
    return action(config, store, item)


def _cmd_review_show(args: argparse.Namespace, logger: logging.Logger) -> int:
    def _show(config: Config, store: BlobStore, item: dict) -> int:
        print(json_dumps(item, indent=2))
        return 0

    return _with_pending_item(args, logger, _show)


def _cmd_review_approve(args: argparse.Namespace, logger: logging.Logger) -> int:
    def _approve(config: Config, store: BlobStore, item: dict) -> int:
        approved = review_service.approve(store, config, review_service.item_key(item))
        print(f"Approved: {approved.get('title') or approved.get('slug')}")
        return 0

    return _with_pending_item(args, logger, _approve)


def _cmd_review_reject(args: argparse.Namespace, logger: logging.Logger) -> int:
    feedback = " ".join(args.feedback).strip()
    if not feedback:
        log_event(logger, logging.ERROR, "feedback_required", index=args.index)
        return 1

    def _reject(config: Config, store: BlobStore, item: dict) -> int:
        review_service.reject(store, review_service.item_key(item), feedback)
        print(f"Rejected: {item.get('title') or item.get('slug')}")
        return 0

    return _with_pending_item(args, logger, _reject)


def _cmd_profile_update(args: argparse.Namespace, logger: logging.Logger) -> int:
    loaded = _load(args, logger)
    if loaded is None:
        return 1
    config, store = loaded
    ai = AIContext(client=LLMClient(config.llm, logger), config=config, logger=logger)
    try:
        profile = update_prompt_profile(ai, store)
    except (RepairError, ValueError) as exc:
        log_event(logger, logging.ERROR, "profile_update_failed", error=str(exc))
        return 1
    if profile is None:
        return 0
    for rule in profile["rules"]:
        print(f"- {rule}")
    return 0


def _cmd_serve(args: argparse.Namespace, logger: logging.Logger) -> int:
    import uvicorn

    log_event(logger, logging.INFO, "admin_api_starting", host=args.host, port=args.port)
    uvicorn.run("saitire.admin:app", host=args.host, port=args.port, log_level="info")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="saitire", description="SAItire CLI")
    parser.add_argument(
        "--config",
        dest="config",
        default=None,
        help="Path to config.yml (defaults to SAITIRE_CONFIG_PATH or built-in defaults)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    publish_parser = subparsers.add_parser("publish", help="Generate and publish a batch")
    publish_parser.add_argument(
        "--force", action="store_true", help="Allow repeating an already used source"
    )
    publish_parser.add_argument(
        "--dry-run", action="store_true", help="Generate without writing any collection"
    )
    publish_parser.add_argument("--limit", type=int, default=None, help="Articles per run")
    publish_parser.add_argument(
        "--news-per-trend", type=int, default=None, help="News items fetched per trend"
    )
    publish_parser.add_argument(
        "--investigation", action="store_true", help="Force the investigation article type"
    )
    publish_parser.add_argument(
        "--no-review", action="store_true", help="Skip the LLM quality review"
    )
    publish_parser.add_argument(
        "--no-llm", action="store_true", help="Only preview trends (requires --dry-run)"
    )
    publish_parser.set_defaults(func=_cmd_publish)

    review_parser = subparsers.add_parser("review", help="Work the human review queue")
    review_subparsers = review_parser.add_subparsers(dest="review_command", required=True)

    review_list = review_subparsers.add_parser("list", help="List pending items")
    review_list.set_defaults(func=_cmd_review_list)

    review_show = review_subparsers.add_parser("show", help="Print one pending item")
    review_show.add_argument("index", type=int)
    review_show.set_defaults(func=_cmd_review_show)

    review_approve = review_subparsers.add_parser("approve", help="Publish a pending item")
    review_approve.add_argument("index", type=int)
    review_approve.set_defaults(func=_cmd_review_approve)

    review_reject = review_subparsers.add_parser("reject", help="Reject a pending item")
    review_reject.add_argument("index", type=int)
    review_reject.add_argument("feedback", nargs="+", help="Why the item was rejected")
    review_reject.set_defaults(func=_cmd_review_reject)

    profile_parser = subparsers.add_parser("profile", help="Manage the prompt profile")
    profile_subparsers = profile_parser.add_subparsers(dest="profile_command", required=True)
    profile_update = profile_subparsers.add_parser(
        "update", help="Distil reject feedback into writing rules"
    )
    profile_update.set_defaults(func=_cmd_profile_update)

    serve_parser = subparsers.add_parser("serve", help="Run the admin API")
    serve_parser.add_argument("--host", default="127.0.0.1")
    serve_parser.add_argument("--port", type=int, default=8787)
    serve_parser.set_defaults(func=_cmd_serve)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logger = configure_logging("saitire")
    return args.func(args, logger)


if __name__ == "__main__":
    raise SystemExit(main())
