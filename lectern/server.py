"""Development server for Lectern.

``lectern serve`` builds the site, serves the output over HTTP and keeps it
fresh while you write:

- HTML responses get a small script that reloads the page when told to
  over a websocket.
- Missing paths and folders without an index get a 404 (the site's own
  404 page when it has one); directories are never listed.
- A watchdog observer rebuilds the site into a staging directory whenever
  content, assets, data or lectern.yaml change, swaps it in and tells the
  browsers to reload.
- After every build the content checks run, so broken links and stale
  index entries show up in the terminal without a separate ``lectern check``.

Key classes:
- DevServer: Runs the HTTP server, the websocket server and the watcher.
- _ReloadHandler: HTTP handler that injects the reload script.
- _ChangeHandler: Watchdog handler that triggers rebuilds.
"""

from __future__ import annotations

import asyncio
import functools
import json
import os
import shutil
import threading
import time
from collections.abc import Iterator
from http.server import SimpleHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path
from typing import Any

import websockets
from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from .build import BuildError, BuildResult, ContentCheckError, build_site
from .checks import check_pages
from .config import CONFIG_FILENAME, ConfigError, load_config

RELOAD_SCRIPT = """
    <script>
    (() => {{
      const ws = new WebSocket('ws://' + location.hostname + ':{ws_port}');
      ws.onmessage = (event) => {{
        const data = JSON.parse(event.data || '{{}}');
        if (data.type === 'reload') location.reload();
      }};
    }})();
    </script>
    """

# Path components whose changes never trigger a rebuild.
IGNORED_PARTS = (".git", "__pycache__")


def resolve_ports(
    config: dict[str, Any], http_port: int | None = None, ws_port: int | None = None
) -> tuple[int, int]:
    """Return the (http, websocket) ports to listen on.

    An explicit HTTP port moves the websocket port along with it (port + 1)
    unless the websocket port is given too; without overrides both come
    from lectern.yaml.
    """
    http = int(http_port or config.get("port", 4000))
    if ws_port is not None:
        return http, int(ws_port)
    if http_port is not None:
        return http, http + 1
    return http, int(config.get("ws_port", http + 1))


class _ReloadHandler(SimpleHTTPRequestHandler):
    """Serves the output directory and injects the reload script into HTML."""

    reload_script = RELOAD_SCRIPT.format(ws_port=4001)

    def end_headers(self):
        self.send_header("Cache-Control", "no-cache, no-store, must-revalidate")
        super().end_headers()

    def list_directory(self, path):  # pragma: no cover - send_head handles folders
        return self._serve_404()

    def _inject(self, content: str) -> bytes:
        if "</body>" in content:
            content = content.replace("</body>", f"{self.reload_script}</body>")
        else:
            content += self.reload_script
        return content.encode("utf-8")

    def _send_html(self, status: int, encoded: bytes) -> None:
        self.send_response(status)
        self.send_header("Content-type", "text/html; charset=utf-8")
        self.send_header("Content-Length", str(len(encoded)))
        self.end_headers()
        self.wfile.write(encoded)

    def _serve_404(self):
        """Answer with the site's 404 page, or a plain 404 error."""
        root = Path(self.directory)
        for candidate in (root / "404" / "index.html", root / "404.html"):
            if candidate.exists():
                self._send_html(404, self._inject(candidate.read_text(encoding="utf-8")))
                return None
        self.send_error(404, "File not found")
        return None

    def send_head(self):
        target = Path(self.translate_path(self.path))
        if target.is_dir():
            target = target / "index.html"
        if not target.exists():
            return self._serve_404()
        if target.suffix == ".html":
            self._send_html(200, self._inject(target.read_text(encoding="utf-8")))
            return None
        return super().send_head()


class DevServer:
    """Development server with live reload.

    Attributes:
        project_root: Root directory of the project.
        config: Project configuration.
        output_dir: Directory the built site is served from.
        http_port: Port of the HTTP server.
        ws_port: Port of the reload websocket.
    """

    def __init__(
        self, project_root: Path, http_port: int | None = None, ws_port: int | None = None
    ):
        self.project_root = project_root
        self.config = load_config(project_root)
        self.site_dir = project_root / str(self.config.get("site_dir", "site"))
        self.output_dir = project_root / str(self.config.get("output_dir", "output"))
        self._staging_dir = self.output_dir.with_name(f"{self.output_dir.name}.staging")
        self.http_port, self.ws_port = resolve_ports(self.config, http_port, ws_port)
        self._reload_script = RELOAD_SCRIPT.format(ws_port=self.ws_port)
        # Pages link to each other absolutely so the served copy works as-is.
        self._root_url = f"http://localhost:{self.http_port}"
        self._watch_folders = [str(self.config.get("site_dir", "site")), "assets", "data"]
        self._observer: Observer | None = None
        self._ws_clients: set = set()
        self._loop = asyncio.new_event_loop()
        self._rebuilding = False
        self._last_rebuild_at = 0.0
        self._last_signature: tuple | None = None
        self._debounce_seconds = 0.05
        self._post_build_delay = 0.05

    def start(self, include_drafts: bool = False) -> None:  # pragma: no cover - blocks forever
        self._build(include_drafts)
        self._last_signature = self._compute_signature()
        threading.Thread(target=self._start_http, daemon=True).start()
        threading.Thread(target=self._start_ws, daemon=True).start()
        self._start_watcher(include_drafts)
        try:
            while True:
                time.sleep(1)
        except KeyboardInterrupt:
            self.stop()

    def stop(self) -> None:
        if self._observer:
            self._observer.stop()
            self._observer.join()
        self._loop.call_soon_threadsafe(self._loop.stop)

    def _build(self, include_drafts: bool) -> BuildResult:
        """Build into the staging directory, swap it in and report findings."""
        staging = self._prepare_staging_dir()
        result = build_site(
            self.project_root,
            include_drafts=include_drafts,
            root_url=self._root_url,
            clean_output=True,
            output_dir_override=staging,
        )
        self._activate_staging(staging)
        self._report_checks(result)
        return result

    def _report_checks(self, result: BuildResult) -> None:
        report = check_pages(self.site_dir, result.pages, self.project_root / "assets")
        if report.findings:
            print(
                f"Content checks: {len(report.errors)} error(s), "
                f"{len(report.warnings)} warning(s); run `lectern check` for details."
            )

    def _start_http(self) -> None:  # pragma: no cover - blocks forever
        handler_cls = type(
            "_ReloadHandlerWithPort",
            (_ReloadHandler,),
            {"reload_script": self._reload_script},
        )
        handler = functools.partial(handler_cls, directory=str(self.output_dir))
        httpd = ThreadingHTTPServer(("", self.http_port), handler)
        print(f"Serving {self.output_dir} at http://localhost:{self.http_port}")
        httpd.serve_forever()

    def _start_ws(self) -> None:
        asyncio.set_event_loop(self._loop)
        try:
            self._loop.run_until_complete(self._run_ws_server())
        except OSError as exc:
            print(f"WebSocket server failed to start (port {self.ws_port}): {exc}")

    async def _run_ws_server(self) -> None:  # pragma: no cover - blocks forever
        async with websockets.serve(self._ws_handler, "0.0.0.0", self.ws_port):
            await asyncio.Future()

    async def _ws_handler(self, websocket):
        self._ws_clients.add(websocket)
        try:
            await websocket.wait_closed()
        finally:
            self._ws_clients.discard(websocket)

    def _broadcast_reload(self) -> None:
        message = json.dumps({"type": "reload"})
        asyncio.run_coroutine_threadsafe(self._async_broadcast(message), self._loop)

    async def _async_broadcast(self, message: str) -> None:
        gone = set()
        for client in self._ws_clients:
            try:
                await client.send(message)
            except Exception:
                gone.add(client)
        self._ws_clients -= gone

    def _start_watcher(self, include_drafts: bool) -> None:
        handler = _ChangeHandler(self, include_drafts)
        observer = Observer()
        for folder in self._watch_folders:
            path = self.project_root / folder
            if path.exists():
                observer.schedule(handler, str(path), recursive=True)
        # lectern.yaml lives in the project root itself.
        observer.schedule(handler, str(self.project_root), recursive=False)
        observer.start()
        self._observer = observer

    def rebuild(self, include_drafts: bool) -> None:
        """Rebuild after a change unless one is running or nothing changed."""
        if self._rebuilding:
            return
        if time.time() - self._last_rebuild_at < self._debounce_seconds:
            return
        signature = self._compute_signature()
        if signature is not None and signature == self._last_signature:
            return
        self._rebuilding = True
        try:
            print("Change detected; rebuilding...")
            try:
                self._build(include_drafts)
            except (BuildError, ConfigError, ContentCheckError, FileNotFoundError) as exc:
                # The last good build stays in place.
                print(f"Rebuild failed: {exc}")
                return
            self._last_signature = signature
            if self._post_build_delay:
                time.sleep(self._post_build_delay)
            self._broadcast_reload()
        finally:
            self._rebuilding = False
            self._last_rebuild_at = time.time()

    def _watched_files(self) -> Iterator[Path]:
        for folder in self._watch_folders:
            root = self.project_root / folder
            if root.exists():
                yield from (p for p in sorted(root.rglob("*")) if not p.is_dir())
        config_path = self.project_root / CONFIG_FILENAME
        if config_path.exists():
            yield config_path

    def _compute_signature(self) -> tuple | None:
        """Return (path, mtime, size) for every watched file, or None if there are none."""
        entries = []
        for path in self._watched_files():
            try:
                stat = path.stat()
            except OSError:
                continue
            rel = path.relative_to(self.project_root).as_posix()
            entries.append((rel, stat.st_mtime_ns, stat.st_size))
        return tuple(entries) or None

    def _prepare_staging_dir(self) -> Path:
        if self._staging_dir.exists():
            shutil.rmtree(self._staging_dir)
        self._staging_dir.mkdir(parents=True)
        return self._staging_dir

    def _activate_staging(self, staging: Path) -> None:
        if self.output_dir.exists():
            shutil.rmtree(self.output_dir)
        os.replace(staging, self.output_dir)


class _ChangeHandler(FileSystemEventHandler):
    """Triggers a rebuild for any change outside the build output."""

    def __init__(self, server: DevServer, include_drafts: bool):
        super().__init__()
        self.server = server
        self.include_drafts = include_drafts

    def _is_ignored(self, path: Path) -> bool:
        if any(part in IGNORED_PARTS for part in path.parts):
            return True
        return any(
            path.is_relative_to(folder)
            for folder in (self.server.output_dir, self.server._staging_dir)
        )

    def on_any_event(self, event):
        if event.is_directory or self._is_ignored(Path(event.src_path)):
            return
        self.server.rebuild(self.include_drafts)
