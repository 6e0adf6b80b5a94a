from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .blobstore import BlobStore, StorageBindingError, get_blob_store
from .config import Config, ConfigError, load_config
from .security.tokens import is_admin_token, login_token
from .services import comments_service, inbox_service, review_service
from .services.comments_service import CommentError
from .services.review_service import NotFoundError
from .utils import configure_logging, log_event

logger = logging.getLogger("saitire.admin")

app = FastAPI(title="SAItire Admin API")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["content-type", "authorization"],
)

_config: Config | None = None


def get_config() -> Config:
    global _config
    if _config is None:
        try:
            _config = load_config()
        except ConfigError as exc:
            log_event(logger, logging.ERROR, "config_error", error=str(exc))
            raise HTTPException(status_code=500, detail="invalid configuration") from exc
    return _config


def reset_state() -> None:
    global _config
    _config = None


def get_store(config: Config = Depends(get_config)) -> BlobStore:
    try:
        return get_blob_store(config)
    except StorageBindingError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    except ValueError as exc:
        log_event(logger, logging.ERROR, "blob_store_unavailable", error=str(exc))
        raise HTTPException(status_code=500, detail="BLOB_STORE binding missing") from exc


def _bearer_token(request: Request) -> str:
    header = request.headers.get("authorization") or ""
    if header.startswith("Bearer "):
        return header[7:].strip()
    return ""


def _require_admin(request: Request, config: Config = Depends(get_config)) -> None:
    if not is_admin_token(config.admin, _bearer_token(request)):
        raise HTTPException(status_code=401, detail="unauthorized")


async def _read_body(request: Request) -> dict[str, Any]:
    raw = await request.body()
    if not raw:
        return {}
    try:
        body = json.loads(raw)
    except (UnicodeDecodeError, json.JSONDecodeError):
        return {}
    return body if isinstance(body, dict) else {}


def _target_id(body: dict[str, Any]) -> str:
    target = str(body.get("id") or body.get("slug") or "").strip()
    if not target:
        raise HTTPException(status_code=400, detail="id required")
    return target


@app.exception_handler(StarletteHTTPException)
async def _http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse({"error": exc.detail}, status_code=exc.status_code)


@app.exception_handler(NotFoundError)
async def _not_found(request: Request, exc: NotFoundError) -> JSONResponse:
    return JSONResponse({"error": str(exc)}, status_code=404)


@app.exception_handler(CommentError)
async def _comment_error(request: Request, exc: CommentError) -> JSONResponse:
    return JSONResponse({"error": str(exc)}, status_code=exc.status)


@app.on_event("startup")
def _startup() -> None:
    configure_logging("saitire.admin")


@app.get("/health")
def health() -> dict[str, object]:
    return {"ok": True, "time": datetime.now(tz=timezone.utc).isoformat()}


@app.post("/login")
async def login(request: Request, config: Config = Depends(get_config)) -> dict[str, str]:
    body = await _read_body(request)
    if not config.admin.password:
        raise HTTPException(status_code=500, detail="SAITIRE_ADMIN_PASSWORD missing")
    password = str(body.get("password") or "")
    if password != config.admin.password:
        log_event(logger, logging.WARNING, "login_failed")
        raise HTTPException(status_code=401, detail="invalid password")
    log_event(logger, logging.INFO, "login_ok")
    return {"token": login_token(config.admin, password)}


@app.get("/pending", dependencies=[Depends(_require_admin)])
def pending(store: BlobStore = Depends(get_store)) -> dict[str, object]:
    return {"pending": review_service.list_pending(store)}


@app.get("/published", dependencies=[Depends(_require_admin)])
def published(store: BlobStore = Depends(get_store)) -> dict[str, object]:
    return {"published": review_service.list_published(store)}


@app.post("/approve", dependencies=[Depends(_require_admin)])
async def approve(
    request: Request,
    config: Config = Depends(get_config),
    store: BlobStore = Depends(get_store),
) -> dict[str, object]:
    target = _target_id(await _read_body(request))
    item = review_service.approve(store, config, target)
    return {"ok": True, "id": item.get("id")}


@app.post("/reject", dependencies=[Depends(_require_admin)])
async def reject(request: Request, store: BlobStore = Depends(get_store)) -> dict[str, object]:
    body = await _read_body(request)
    target = _target_id(body)
    review_service.reject(store, target, str(body.get("feedback") or ""))
    return {"ok": True, "id": target}


@app.post("/delete_published", dependencies=[Depends(_require_admin)])
async def delete_published(
    request: Request, store: BlobStore = Depends(get_store)
) -> dict[str, object]:
    body = await _read_body(request)
    target = _target_id(body)
    review_service.delete_published(store, target, str(body.get("feedback") or ""))
    return {"ok": True, "id": target}


@app.post("/pending_upsert", dependencies=[Depends(_require_admin)])
async def pending_upsert(
    request: Request,
    config: Config = Depends(get_config),
    store: BlobStore = Depends(get_store),
) -> dict[str, object]:
    body = await _read_body(request)
    try:
        count = review_service.pending_upsert(store, config, body.get("item"))
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {"ok": True, "count": count}


@app.get("/comments/{slug}")
def comments_for_slug(slug: str, store: BlobStore = Depends(get_store)) -> dict[str, object]:
    clean = comments_service.clean_slug(slug)
    if not clean:
        raise HTTPException(status_code=400, detail="missing slug")
    return {"slug": clean, "comments": comments_service.list_comments(store, clean)}


@app.post("/comments")
async def post_comment(
    request: Request,
    config: Config = Depends(get_config),
    store: BlobStore = Depends(get_store),
) -> dict[str, object]:
    body = await _read_body(request)
    comment = comments_service.post_comment(store, config.comments, body)
    return {"ok": True, "comment": comment}


@app.get("/comments", dependencies=[Depends(_require_admin)])
def all_comments(store: BlobStore = Depends(get_store)) -> dict[str, object]:
    return {"commentsBySlug": comments_service.list_all_comments(store)}


@app.post("/comments/delete", dependencies=[Depends(_require_admin)])
async def delete_comment(
    request: Request, store: BlobStore = Depends(get_store)
) -> dict[str, object]:
    body = await _read_body(request)
    comment_id = str(body.get("id") or "").strip()
    comments_service.delete_comment(store, str(body.get("slug") or ""), comment_id)
    return {"ok": True, "id": comment_id}


@app.post("/reader_feedback")
async def submit_reader_feedback(
    request: Request, store: BlobStore = Depends(get_store)
) -> dict[str, object]:
    body = await _read_body(request)
    try:
        item = inbox_service.submit(store, body, request.headers.get("user-agent") or "")
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {"ok": True, "id": item["id"]}


@app.get("/reader_feedback", dependencies=[Depends(_require_admin)])
def list_reader_feedback(store: BlobStore = Depends(get_store)) -> dict[str, object]:
    return {"feedback": inbox_service.list_items(store)}


@app.post("/reader_feedback/resolve", dependencies=[Depends(_require_admin)])
async def resolve_reader_feedback(
    request: Request, store: BlobStore = Depends(get_store)
) -> dict[str, object]:
    body = await _read_body(request)
    item_id = str(body.get("id") or "").strip()
    if not item_id:
        raise HTTPException(status_code=400, detail="id required")
    resolved = body.get("resolved", True)
    item = inbox_service.resolve(store, item_id, resolved is not False)
    return {"ok": True, "item": item}


@app.post("/reader_feedback/delete", dependencies=[Depends(_require_admin)])
async def delete_reader_feedback(
    request: Request, store: BlobStore = Depends(get_store)
) -> dict[str, object]:
    body = await _read_body(request)
    item_id = str(body.get("id") or "").strip()
    if not item_id:
        raise HTTPException(status_code=400, detail="id required")
    inbox_service.delete(store, item_id)
    return {"ok": True, "id": item_id}
