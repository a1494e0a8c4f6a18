"""FastAPI management console over a scan index.

Every read re-queries the index; the console keeps no copy of the groups of its own.
Deletes and renames go through FileMutator (disk first, then index).
"""
import logging
import mimetypes
import socket
import threading
import webbrowser
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, List

import uvicorn
from fastapi import BackgroundTasks, FastAPI, HTTPException, Query, Request
from fastapi.responses import FileResponse, JSONResponse
from pydantic import BaseModel

from .. import config
from ..database.db import DBManager, index_side_files
from ..database.ops import ScanIndex
from ..exceptions import DeeDuperError, MutationConflictError, ScanIndexError
from ..organization.mutator import FileMutator

STATIC_DIR = Path(__file__).resolve().parent / "static"


class DeleteRequest(BaseModel):
    file_path: str


class RenameRequest(BaseModel):
    old_path: str
    new_name: str


class ShutdownRequest(BaseModel):
    delete_index: bool = False


@contextmanager
def _http_errors(action: str):
    try:
        yield
    except MutationConflictError as exc:
        raise HTTPException(status_code=409, detail=f"Failed to {action}: {exc}") from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=f"Failed to {action}: {exc}") from exc
    except OSError as exc:
        logging.error(f"Failed to {action}: {exc}")
        raise HTTPException(status_code=500, detail=f"Failed to {action}: {exc}") from exc


def create_app(db_manager: DBManager, scan_id: int) -> FastAPI:
    index = ScanIndex(db_manager.conn)
    lock = db_manager.write_lock
    mutator = FileMutator(index, lock)
    index_path = Path(db_manager.db_path)

    with lock:
        if index.get_scan_info(scan_id) is None:
            raise ScanIndexError(f"Scan {scan_id} not found in {index_path}")

    app = FastAPI(
        title="dee-duper console",
        description="Inspect and clean up duplicate groups recorded in a scan index.",
    )
    # Set by run_console once uvicorn owns the app
    app.state.server = None

    # Raised once shutdown has closed the connection
    @app.exception_handler(ScanIndexError)
    async def index_unavailable(request: Request, exc: ScanIndexError) -> JSONResponse:
        logging.error(f"Scan index unavailable: {exc}")
        return JSONResponse(status_code=503, content={"detail": f"Scan index unavailable: {exc}"})

    def _require_indexed(path: str) -> Path:
        with lock:
            known = index.has_file(scan_id, path)
        if not known:
            raise HTTPException(status_code=404, detail=f"File is not part of this scan: {path}")
        return Path(path)

    @app.get("/")
    def root() -> FileResponse:
        return FileResponse(STATIC_DIR / "index.html")

    @app.get("/api/duplicates")
    def duplicates() -> List[List[Dict[str, Any]]]:
        with lock:
            groups = index.get_duplicate_groups(scan_id)
        return [[rec.to_dict() for rec in g] for g in groups if len(g) >= 2]

    @app.get("/api/scan-info")
    def scan_info() -> Dict[str, Any]:
        with lock:
            session = index.get_scan_info(scan_id)
        if session is None:
            raise HTTPException(status_code=404, detail=f"Scan {scan_id} not found")
        return session.to_dict()

    @app.get("/api/download")
    def download(path: str = Query(...)) -> FileResponse:
        file_path = _require_indexed(path)
        if not file_path.is_file():
            raise HTTPException(status_code=404, detail=f"File no longer exists: {path}")

        mime_type = mimetypes.guess_type(file_path.name)[0] or "application/octet-stream"
        disposition = "inline" if mime_type.startswith(config.INLINE_MIME_PREFIXES) else "attachment"
        return FileResponse(
            file_path,
            media_type=mime_type,
            filename=file_path.name,
            content_disposition_type=disposition,
        )

    @app.post("/api/delete")
    def delete(payload: DeleteRequest) -> Dict[str, Any]:
        _require_indexed(payload.file_path)
        with _http_errors("delete file"):
            deleted = mutator.delete(payload.file_path)
        return {"success": True, "message": f"Successfully deleted {deleted}"}

    @app.post("/api/rename")
    def rename(payload: RenameRequest) -> Dict[str, Any]:
        _require_indexed(payload.old_path)
        with _http_errors("rename file"):
            new_path = mutator.rename(payload.old_path, payload.new_name)
        return {
            "success": True,
            "new_path": str(new_path),
            "message": f"Successfully renamed {payload.old_path} to {new_path}",
        }

    def _finish_shutdown(delete_index: bool):
        if delete_index:
            with lock:
                db_manager.close()
                for p in index_side_files(index_path):
                    try:
                        p.unlink()
                    except FileNotFoundError:
                        continue
            logging.info(f"Deleted index {index_path}")
        server = app.state.server
        if server is not None:
            server.should_exit = True

    @app.post("/api/shutdown")
    def shutdown(payload: ShutdownRequest, background_tasks: BackgroundTasks) -> Dict[str, Any]:
        # Runs after the response has been sent
        background_tasks.add_task(_finish_shutdown, payload.delete_index)
        return {"success": True, "message": "Server shutting down"}

    return app


def _ensure_port_free(host: str, port: int):
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        try:
            s.bind((host, port))
        except OSError as e:
            raise DeeDuperError(
                f"Port {port} is already in use. Try a different port with --port option."
            ) from e


def run_console(db_manager: DBManager,
                scan_id: int,
                port: int = config.DEFAULT_PORT,
                host: str = config.DEFAULT_HOST,
                open_browser: bool = True):
    """Blocks until the console is shut down (POST /api/shutdown or Ctrl+C)."""
    app = create_app(db_manager, scan_id)
    _ensure_port_free(host, port)

    server = uvicorn.Server(uvicorn.Config(app, host=host, port=port, log_level="warning"))
    app.state.server = server

    url = f"http://localhost:{port}"
    session = ScanIndex(db_manager.conn).get_scan_info(scan_id)
    print("\ndee-duper Web Interface")
    print("==========================================")
    print(f"Server started at: {url}")
    print(f"Base directory: {session.base_directory}")
    print(f"Files scanned: {session.files_scanned}")
    print(f"Groups found: {session.groups_found}")
    if session.duration is not None:
        print(f"Scan time: {round(session.duration.total_seconds())}s")
    print("==========================================\n")

    if open_browser:
        # Give uvicorn a moment to bind before the browser asks for the page
        threading.Timer(1.0, _open_browser, args=(url,)).start()

    server.run()
    logging.info("Console stopped.")


def _open_browser(url: str):
    if not webbrowser.open(url):
        print(f"Please open {url} manually in your browser.")
