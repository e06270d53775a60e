"""CLI entry-point to serve the selection API or run a one-shot bulk select."""
from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import uvicorn

from api import __version__ as API_VERSION
from api.server import APIServerConfig, create_app
from collection.artic import ArticPageFetcher
from collection.fetcher import FetchError
from core.logging_utils import configure_json_logging, redact_secret
from core.paths import ensure_working_dir_structure, get_exports_dir, resolve_working_dir
from core.settings import load_settings
from selection import BulkSelectAborted, InvalidTarget, SelectionSession

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 27183
DEFAULT_CORS = ["http://localhost", "http://127.0.0.1"]


def _resolve_bind_host(candidate: Optional[str]) -> str:
    host = (candidate or DEFAULT_HOST).strip()
    if not host:
        host = DEFAULT_HOST
    norm = host.lower()
    if norm == "localhost":
        return "127.0.0.1"
    if norm.startswith("::ffff:"):
        norm = norm.split("::ffff:")[-1]
    if norm == "::1":
        return "127.0.0.1"
    if norm.startswith("127."):
        return norm
    raise ValueError(
        f"Refusing to bind API server to non-loopback host '{candidate}'. The selection API only serves on localhost."
    )


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Browse a paged collection and build a cross-page selection.")
    parser.add_argument("--host", default=None, help="Bind host (default from settings.json)")
    parser.add_argument("--port", type=int, default=None, help="Bind port (default from settings.json)")
    parser.add_argument("--api-key", dest="api_key", default=None, help="Override the API key for this session")
    parser.add_argument(
        "--cors",
        action="append",
        dest="cors",
        default=None,
        help="Additional allowed CORS origin (repeatable).",
    )
    parser.add_argument("--page-size", dest="page_size", type=int, default=None, help="Override the page size.")
    parser.add_argument(
        "--select-first",
        dest="select_first",
        default=None,
        help="Select the first N records and export them instead of starting the API server.",
    )
    parser.add_argument(
        "--output",
        default=None,
        help="JSON lines file for --select-first (default: <working_dir>/exports/selection.jsonl).",
    )
    return parser.parse_args(argv)


def _configure_logging(settings: Dict[str, Any], working_dir: Path) -> None:
    log_cfg = settings.get("logging") if isinstance(settings.get("logging"), dict) else {}
    level = getattr(logging, str(log_cfg.get("level") or "INFO").upper(), logging.INFO)
    logging.basicConfig(level=level, format="[%(levelname)s] %(message)s")
    if log_cfg.get("json_file", True):
        configure_json_logging(working_dir=working_dir, level=level)


def build_session(settings: Dict[str, Any], *, page_size: Optional[int] = None) -> SelectionSession:
    if page_size is not None:
        session_cfg = dict(settings.get("session") or {})
        session_cfg["page_size"] = page_size
        settings = dict(settings, session=session_cfg)
    fetcher = ArticPageFetcher.from_settings(settings)
    return SelectionSession.from_settings(fetcher, settings)


def export_selection(session: SelectionSession, target: Path) -> int:
    target.parent.mkdir(parents=True, exist_ok=True)
    records = session.selected_records()
    with open(target, "w", encoding="utf-8") as handle:
        for record in records:
            handle.write(json.dumps(record.as_dict(), ensure_ascii=False))
            handle.write("\n")
    return len(records)


def run_select_first(session: SelectionSession, raw_target: str, output: Path) -> int:
    try:
        result = session.bulk_select(raw_target)
    except InvalidTarget as exc:
        logging.error("%s", exc)
        return 2
    except BulkSelectAborted as exc:
        logging.error("Bulk select failed after adding %d record(s): %s", exc.added, exc)
        if exc.added:
            export_selection(session, output)
            logging.info("Partial selection written to %s", output)
        return 1
    written = export_selection(session, output)
    logging.info(
        "Selected %d record(s) over %d page(s)%s; wrote %d to %s",
        result.added,
        result.pages_scanned,
        " (collection exhausted)" if result.exhausted else "",
        written,
        output,
    )
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    working_dir = resolve_working_dir()
    ensure_working_dir_structure(working_dir)
    settings = load_settings(working_dir)
    _configure_logging(settings, working_dir)

    if args.page_size is not None and args.page_size < 1:
        logging.error("--page-size must be positive")
        return 2
    session = build_session(settings, page_size=args.page_size)

    if args.select_first is not None:
        output = Path(args.output) if args.output else get_exports_dir(working_dir) / "selection.jsonl"
        return run_select_first(session, args.select_first, output)

    api_settings = settings.get("api") if isinstance(settings.get("api"), dict) else {}
    try:
        host = _resolve_bind_host(args.host or api_settings.get("host"))
    except ValueError as exc:
        logging.error("%s", exc)
        return 2
    port = args.port or api_settings.get("port") or DEFAULT_PORT
    try:
        port = int(port)
    except (TypeError, ValueError):
        port = DEFAULT_PORT
    api_key = args.api_key if args.api_key else api_settings.get("api_key")
    cors: List[str] = list(args.cors) if args.cors else list(api_settings.get("cors_origins") or DEFAULT_CORS)

    if api_key:
        logging.info("API key required (%s)", redact_secret(api_key))
    else:
        logging.warning("API key is not configured; any local client may drive the session.")

    try:
        session.navigate_to_page(1)
    except FetchError as exc:
        logging.warning("Initial page fetch failed, serving an empty page: %s", exc)

    remote = settings.get("remote") if isinstance(settings.get("remote"), dict) else {}
    config = APIServerConfig(
        session=session,
        api_key=api_key,
        cors_origins=cors,
        app_version=API_VERSION,
        max_page_size=int(remote.get("max_page_size") or 100),
    )
    app = create_app(config)

    print(f"API listening on http://{host}:{port}", flush=True)

    uvicorn_config = uvicorn.Config(
        app,
        host=host,
        port=port,
        log_level="info",
        access_log=False,
    )
    server = uvicorn.Server(uvicorn_config)
    server.run()
    return 0


if __name__ == "__main__":
    sys.exit(main())
