# app.py
# placescan: scan ingestion + retrieval server (FastAPI)
#
# Endpoints:
#   GET    /health
#   POST   /scan/data            (secret; one chunk: tree|scripts|remotes|properties|services)
#   POST   /scan/complete        (secret; finalize -> manifest.json)
#   GET    /scan/status          (scans still receiving chunks)
#   POST   /scan/cancel          (secret; drop a session, stored files stay)
#   GET    /scan/events          (tail of the JSONL audit ledger)
#   GET    /games                (manifests, newest first)
#   GET    /games/{placeId}
#   GET    /games/{placeId}/{scope}   (?path&search&class&include_source&max_depth)
#   DELETE /games/{placeId}      (secret)
#   DELETE /games/{placeId}/{scope}   (secret; clear one scope file)
#   POST   /mcp                  (MCP over HTTP, read-only tools)
#   GET    /mcp                  (MCP info/health)
# Note: keep the endpoint list above in sync with any new routes.

from __future__ import annotations

import threading
import time
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException, Path, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from mcp_common import handle_request as mcp_handle_request, tool_list as mcp_tool_list, tool_result
from placescan import __version__ as APP_VERSION
from placescan.config import resolve_config
from placescan.errors import ScanError, ValidationError
from placescan.models import GameQuery, ScanCancelIn, ScanChunk, ScanCompleteRequest
from placescan.query import summarize_manifest
from placescan.service import ScannerService

SECRET_HEADER = "X-Scan-Secret"

# ----------------------------
# State
# ----------------------------

app = FastAPI(title="placescan", version=APP_VERSION)

_svc_lock = threading.RLock()
_service: Optional[ScannerService] = None


def _get_service() -> ScannerService:
    global _service
    with _svc_lock:
        if _service is None:
            _service = ScannerService.from_config(resolve_config())
        return _service


def _reload_service() -> ScannerService:
    global _service
    with _svc_lock:
        _service = ScannerService.from_config(resolve_config())
        return _service


# ----------------------------
# Helpers
# ----------------------------

def _now() -> float:
    return time.time()


def _error(status: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status, content={"ok": False, "error": message, "status": status})


def _check_secret(request: Request) -> None:
    secret = _get_service().config.secret
    if not secret:
        return
    if request.headers.get(SECRET_HEADER, "") != secret:
        raise HTTPException(status_code=401, detail=f"invalid or missing {SECRET_HEADER} header")


def _game_query(
    path: Optional[str],
    search: Optional[str],
    class_name: Optional[str],
    include_source: bool,
    max_depth: Optional[int],
) -> GameQuery:
    return GameQuery(
        path=path,
        search=search,
        class_name=class_name,
        include_source=include_source,
        max_depth=max_depth,
    )


@app.exception_handler(ScanError)
async def _scan_error_handler(request: Request, exc: ScanError) -> JSONResponse:
    return _error(exc.status, exc.message)


@app.exception_handler(StarletteHTTPException)
async def _http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return _error(exc.status_code, str(exc.detail))


@app.exception_handler(RequestValidationError)
async def _request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    detail = "; ".join(
        f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg')}" for err in errors
    )
    return _error(400, f"Invalid request: {detail}" if detail else "Invalid request")


@app.middleware("http")
async def _limit_body_size(request: Request, call_next):
    # Scan chunks can be large; anything past the configured cap is refused up front.
    limit = _get_service().config.max_body_bytes
    length = request.headers.get("content-length")
    if length is not None:
        try:
            too_large = int(length) > limit
        except ValueError:
            return _error(400, "Invalid Content-Length header")
        if too_large:
            return _error(413, f"Request body exceeds the {limit} byte limit")
    return await call_next(request)


# ----------------------------
# Routes
# ----------------------------

@app.get("/health")
def health():
    svc = _get_service()
    return {
        "ok": True,
        "serverName": "placescan",
        "serverTime": _now(),
        "version": APP_VERSION,
        "endpoints": {
            "scan_data": "/scan/data",
            "scan_complete": "/scan/complete",
            "scan_status": "/scan/status",
            "scan_cancel": "/scan/cancel",
            "scan_events": "/scan/events",
            "games": "/games",
            "game": "/games/{placeId}",
            "game_scope": "/games/{placeId}/{scope}",
            "mcp": "/mcp",
        },
        "meta": {
            "storageDir": str(svc.config.storage_dir),
            "secretRequired": bool(svc.config.secret),
            "maxBodyBytes": svc.config.max_body_bytes,
            "strictReads": svc.config.strict_reads,
            "activeScans": len(svc.sessions),
        },
    }


@app.post("/scan/data")
def scan_data(chunk: ScanChunk, request: Request):
    _check_secret(request)
    result = _get_service().submit_chunk(
        chunk.place_id, chunk.chunk_type, chunk.data, chunk_index=chunk.chunk_index
    )
    return {"ok": True, "chunk_type": chunk.chunk_type, "place_id": chunk.place_id, **result}


@app.post("/scan/complete")
def scan_complete(req: ScanCompleteRequest, request: Request):
    _check_secret(request)
    manifest = _get_service().finalize_scan(req)
    print(
        f"[scanner] scan complete for {manifest.place_name} ({manifest.place_id}): "
        f"{manifest.instance_count} instances, {manifest.script_count} scripts, {manifest.remote_count} remotes"
    )
    return {"ok": True, "manifest": manifest.model_dump(mode="json")}


@app.get("/scan/status")
def scan_status():
    scans = _get_service().list_active_scans()
    return {"ok": True, "scans": [s.model_dump(mode="json") for s in scans]}


@app.post("/scan/cancel")
def scan_cancel(inp: ScanCancelIn, request: Request):
    _check_secret(request)
    if inp.place_id is None:
        raise ValidationError("Missing required field: place_id")
    if not _get_service().cancel_scan(inp.place_id):
        raise HTTPException(status_code=404, detail=f"No active scan found for place {inp.place_id}")
    return {"ok": True, "message": f"Cancelled scan for place {inp.place_id}"}


@app.get("/scan/events")
def scan_events(limit: int = Query(50, ge=1, le=1000)):
    return {"ok": True, "events": _get_service().recent_events(limit)}


@app.get("/games")
def games():
    manifests = _get_service().list_manifests()
    return {"ok": True, "games": [m.model_dump(mode="json") for m in manifests]}


@app.get("/games/{place_id}")
def game(place_id: int = Path(..., ge=0)):
    svc = _get_service()
    manifest = svc.get_manifest(place_id)
    return {"ok": True, "manifest": manifest.model_dump(mode="json"), "scopes": svc.list_scopes(place_id)}


@app.get("/games/{place_id}/{scope}")
def game_scope(
    scope: str,
    place_id: int = Path(..., ge=0),
    path: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    class_name: Optional[str] = Query(None, alias="class"),
    include_source: bool = Query(False),
    max_depth: Optional[int] = Query(None, ge=0),
):
    query = _game_query(path, search, class_name, include_source, max_depth)
    data = _get_service().get_scope(place_id, scope, query)
    return {"ok": True, "place_id": place_id, "scope": scope, "data": data}


@app.delete("/games/{place_id}")
def delete_game(request: Request, place_id: int = Path(..., ge=0)):
    _check_secret(request)
    svc = _get_service()
    if not svc.target_exists(place_id):
        raise HTTPException(status_code=404, detail=f"No scan data found for place {place_id}")
    svc.delete_target(place_id)
    print(f"[scanner] deleted stored data for place {place_id}")
    return {"ok": True, "message": f"Deleted scan data for place {place_id}"}


@app.delete("/games/{place_id}/{scope}")
def clear_game_scope(request: Request, scope: str, place_id: int = Path(..., ge=0)):
    _check_secret(request)
    removed = _get_service().clear_scope(place_id, scope)
    return {"ok": True, "place_id": place_id, "scope": scope, "removed": removed}


# ----------------------------
# MCP
# ----------------------------

def _mcp_tool_call(name: str, args: Dict[str, Any]) -> Dict[str, Any]:
    svc = _get_service()
    try:
        if name == "list_games":
            return tool_result([summarize_manifest(m) for m in svc.list_manifests()])
        if name == "get_game":
            place_id = int(args.get("place_id"))
            return tool_result(
                {"manifest": svc.get_manifest(place_id).model_dump(mode="json"), "scopes": svc.list_scopes(place_id)}
            )
        if name == "get_game_scope":
            place_id = int(args.get("place_id"))
            max_depth = args.get("max_depth")
            query = _game_query(
                args.get("path"),
                args.get("search"),
                args.get("class"),
                bool(args.get("include_source", False)),
                int(max_depth) if max_depth is not None else None,
            )
            return tool_result(svc.get_scope(place_id, str(args.get("scope") or ""), query))
        if name == "get_scan_status":
            return tool_result([s.model_dump(mode="json") for s in svc.list_active_scans()])
    except ScanError as exc:
        return tool_result({"error": exc.message, "status": exc.status}, is_error=True)
    except (TypeError, ValueError) as exc:
        return tool_result({"error": f"Invalid arguments: {exc}"}, is_error=True)
    return tool_result({"error": f"Unknown tool: {name}"}, is_error=True)


@app.post("/mcp")
def mcp_http(payload: Dict[str, Any]):
    resp = mcp_handle_request(payload, _mcp_tool_call)
    if resp is None:
        return Response(status_code=202)
    return resp


@app.get("/mcp")
def mcp_info():
    return {"ok": True, "transport": "http", "endpoint": "/mcp", **mcp_tool_list()}


if __name__ == "__main__":
    import argparse
    import os
    import sys

    config = resolve_config()
    parser = argparse.ArgumentParser(description="Run the placescan ingestion server.")
    parser.add_argument("--host", default=config.host)
    parser.add_argument("--port", type=int, default=config.port)
    parser.add_argument("--storage-dir", default=None, help="Overrides PLACESCAN_STORAGE_DIR")
    parser.add_argument("--secret", default=None, help="Overrides PLACESCAN_SECRET")
    parser.add_argument("--reload", action="store_true", help="Enable auto-reload (dev only)")
    args = parser.parse_args()

    # uvicorn imports the app fresh, so overrides travel through the environment.
    if args.storage_dir:
        os.environ["PLACESCAN_STORAGE_DIR"] = args.storage_dir
    if args.secret:
        os.environ["PLACESCAN_SECRET"] = args.secret
    config = resolve_config()
    (config.storage_dir / "places").mkdir(parents=True, exist_ok=True)

    try:
        import uvicorn
    except Exception:
        print("Missing dependency: uvicorn. Install with `python -m pip install uvicorn`.", file=sys.stderr)
        raise

    print(f"placescan listening on {args.host}:{args.port}")
    print(f"  storage: {config.storage_dir}, secret: {bool(config.secret)}")
    uvicorn.run("app:app", host=args.host, port=args.port, reload=args.reload)
