"""
CDP Client

Primary backend: talks the Chrome DevTools Protocol directly to a browser
started with --remote-debugging-port. Target discovery goes over HTTP, the
session over a WebSocket.
"""

import asyncio
import contextlib
import json
import logging
import re
from typing import Any, Callable, Dict, List, Optional

import httpx
import websockets

from .base import BackendKind, BrowserBackend, ErrorBuffer
from ..models import ConsoleError, NetworkError

# Configure logging
logger = logging.getLogger(__name__)


def _format_call_frames(stack_trace: Optional[Dict]) -> Optional[str]:
    frames = (stack_trace or {}).get("callFrames") or []
    if not frames:
        return None
    return "\n".join(
        f"{frame.get('functionName') or '<anonymous>'}@{frame.get('url')}:"
        f"{frame.get('lineNumber')}:{frame.get('columnNumber')}"
        for frame in frames
    )


# Function source: "function ...", "async (...) => ...", "x => ..."
_FUNCTION_SOURCE = re.compile(
    r"^\s*(?:async\s+)?(?:function\b|\([^()]*\)\s*=>|[A-Za-z_$][\w$]*\s*=>)"
)


def is_function_source(expression: str) -> bool:
    """True when ``expression`` is a function to be called rather than a value."""
    return bool(_FUNCTION_SOURCE.match(expression))


def _one_based(value: Optional[int]) -> Optional[int]:
    # CDP reports 0-based line and column numbers
    return value + 1 if isinstance(value, int) else None


def _remote_object_text(obj: Dict) -> str:
    if "value" in obj:
        value = obj["value"]
        return value if isinstance(value, str) else json.dumps(value)
    return obj.get("description") or obj.get("type", "")


class CDPClient(BrowserBackend):
    """
    Low-level DevTools protocol client.

    Features:
    - Command/response correlation by message id
    - Event subscriptions feeding the shared error buffer
    - One-shot event waiters (used for the load event)
    """

    kind = BackendKind.CDP

    def __init__(
        self,
        host: str = "localhost",
        port: int = 9222,
        timeout_ms: int = 30000,
        buffer: Optional[ErrorBuffer] = None
    ):
        super().__init__(buffer)
        self.host = host
        self.port = port
        self.timeout_ms = timeout_ms
        self.target: Optional[Dict[str, Any]] = None

        self._ws = None
        self._reader_task: Optional[asyncio.Task] = None
        self._next_id = 0
        self._pending: Dict[int, asyncio.Future] = {}
        self._handlers: Dict[str, List[Callable[[Dict], None]]] = {}
        self._waiters: Dict[str, List[asyncio.Future]] = {}
        # requestId -> {"method", "url"}; responses and failures only carry the id
        self._requests: Dict[str, Dict[str, str]] = {}

    @property
    def is_connected(self) -> bool:
        return self._ws is not None

    # ==================== Connection ====================

    async def list_targets(self) -> List[Dict[str, Any]]:
        async with httpx.AsyncClient(timeout=5.0) as client:
            response = await client.get(f"http://{self.host}:{self.port}/json/list")
            response.raise_for_status()
            return response.json()

    @staticmethod
    def select_target(targets: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
        """Prefer a real page over about:blank, else take whatever comes first."""
        for target in targets:
            if target.get("type") == "page" and target.get("url") != "about:blank":
                return target
        return targets[0] if targets else None

    async def connect(self) -> None:
        try:
            targets = await self.list_targets()
            target = self.select_target(targets)
            if not target:
                raise RuntimeError("No page target found")

            ws_url = target.get("webSocketDebuggerUrl")
            if not ws_url:
                raise RuntimeError(f"Target {target.get('id')} has no debugger URL (already attached?)")

            self.target = target
            self._ws = await websockets.connect(ws_url, max_size=None)
            self._reader_task = asyncio.create_task(self._read_loop())

            await self._setup_error_handling()
            logger.info(f"[CDP] Attached to {target.get('url')}")
        except Exception as e:
            await self.close()
            raise ConnectionError(f"Failed to connect to CDP: {e}") from e

    async def send(self, method: str, params: Optional[Dict] = None) -> Dict[str, Any]:
        """Send a command and wait for its response."""
        if not self._ws:
            raise RuntimeError("CDP client not connected")

        self._next_id += 1
        message_id = self._next_id
        future = asyncio.get_running_loop().create_future()
        self._pending[message_id] = future

        try:
            await self._ws.send(json.dumps({
                "id": message_id,
                "method": method,
                "params": params or {}
            }))
            response = await asyncio.wait_for(future, self.timeout_ms / 1000)
        finally:
            self._pending.pop(message_id, None)

        if "error" in response:
            raise RuntimeError(f"{method} failed: {response['error'].get('message', response['error'])}")
        return response.get("result", {})

    def on(self, event: str, handler: Callable[[Dict], None]) -> None:
        self._handlers.setdefault(event, []).append(handler)

    def wait_for_event(self, event: str) -> asyncio.Future:
        """Future resolved with the params of the next occurrence of ``event``."""
        future = asyncio.get_running_loop().create_future()
        self._waiters.setdefault(event, []).append(future)
        return future

    async def _read_loop(self):
        try:
            async for raw in self._ws:
                self._dispatch(json.loads(raw))
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning(f"[CDP] Connection lost: {e}")
        finally:
            self._fail_pending(ConnectionError("CDP connection closed"))

    def _dispatch(self, message: Dict[str, Any]):
        if "id" in message:
            future = self._pending.get(message["id"])
            if future and not future.done():
                future.set_result(message)
            return

        method = message.get("method")
        if not method:
            return
        params = message.get("params", {})

        for handler in self._handlers.get(method, []):
            try:
                handler(params)
            except Exception as e:
                logger.warning(f"[CDP] Handler for {method} failed: {e}")

        for future in self._waiters.pop(method, []):
            if not future.done():
                future.set_result(params)

    def _fail_pending(self, error: Exception):
        for future in list(self._pending.values()):
            if not future.done():
                future.set_exception(error)
        for waiters in self._waiters.values():
            for future in waiters:
                if not future.done():
                    future.set_exception(error)
        self._waiters.clear()

    # ==================== Error Channels ====================

    async def _setup_error_handling(self):
        for domain in ("Runtime", "Log", "Network", "Page"):
            await self.send(f"{domain}.enable")

        self.on("Runtime.exceptionThrown", self._on_exception_thrown)
        self.on("Runtime.consoleAPICalled", self._on_console_api_called)
        self.on("Log.entryAdded", self._on_log_entry)
        self.on("Network.requestWillBeSent", self._on_request_will_be_sent)
        self.on("Network.loadingFinished", self._on_loading_finished)
        self.on("Network.responseReceived", self._on_response_received)
        self.on("Network.loadingFailed", self._on_loading_failed)

    def _on_exception_thrown(self, params: Dict):
        details = params.get("exceptionDetails", {})
        exception = details.get("exception") or {}
        self.errors.push(ConsoleError(
            message=exception.get("description") or details.get("text") or "Unknown error",
            stack=_format_call_frames(details.get("stackTrace")),
            source=details.get("url"),
            line=_one_based(details.get("lineNumber")),
            column=_one_based(details.get("columnNumber")),
            level="error",
        ))

    def _on_console_api_called(self, params: Dict):
        call_type = params.get("type")
        if call_type not in ("error", "warning"):
            return

        frames = (params.get("stackTrace") or {}).get("callFrames") or []
        top = frames[0] if frames else {}
        self.errors.push(ConsoleError(
            message=" ".join(_remote_object_text(arg) for arg in params.get("args", [])) or "console." + call_type,
            stack=_format_call_frames(params.get("stackTrace")),
            source=top.get("url") or None,
            line=_one_based(top.get("lineNumber")),
            column=_one_based(top.get("columnNumber")),
            level=call_type,
        ))

    def _on_log_entry(self, params: Dict):
        entry = params.get("entry", {})
        level = entry.get("level")
        if level not in ("error", "warning"):
            return

        self.errors.push(ConsoleError(
            message=entry.get("text") or "Unknown log entry",
            source=entry.get("url"),
            line=_one_based(entry.get("lineNumber")),
            level=level,
            context={"source": entry.get("source")} if entry.get("source") else None,
        ))

    def _on_request_will_be_sent(self, params: Dict):
        request = params.get("request", {})
        self._requests[params.get("requestId")] = {
            "method": request.get("method", "GET"),
            "url": request.get("url", ""),
        }

    def _on_loading_finished(self, params: Dict):
        self._requests.pop(params.get("requestId"), None)

    def _on_response_received(self, params: Dict):
        response = params.get("response", {})
        status = response.get("status", 0)
        if status < 400:
            return

        request = self._requests.get(params.get("requestId"), {})
        self.errors.push(NetworkError(
            message=f"Network error: {status} {response.get('statusText', '')}".rstrip(),
            status=status,
            status_text=response.get("statusText"),
            method=request.get("method", "GET"),
            request_url=response.get("url"),
        ))

    def _on_loading_failed(self, params: Dict):
        request = self._requests.pop(params.get("requestId"), {})
        error_text = params.get("errorText", "Unknown error")
        self.errors.push(NetworkError(
            message=f"Network request failed: {error_text}",
            method=request.get("method"),
            request_url=request.get("url") or params.get("requestId"),
            context={"errorText": error_text, "type": params.get("type")},
        ))

    # ==================== Contract ====================

    async def navigate(self, url: str) -> None:
        if not self._ws:
            raise RuntimeError("CDP client not connected")

        self.errors.clear()
        self._requests.clear()

        load_event = self.wait_for_event("Page.loadEventFired")
        try:
            result = await self.send("Page.navigate", {"url": url})
            if result.get("errorText"):
                raise RuntimeError(f"Navigation to {url} failed: {result['errorText']}")
            await asyncio.wait_for(load_event, self.timeout_ms / 1000)
        finally:
            if not load_event.done():
                load_event.cancel()
            waiters = self._waiters.get("Page.loadEventFired", [])
            if load_event in waiters:
                waiters.remove(load_event)

    async def evaluate(self, expression: str, arg: Any = None) -> Any:
        if not self._ws:
            raise RuntimeError("CDP client not connected")

        if arg is not None:
            # JSON text is a valid JS literal, so arg stays data
            expression = f"({expression})({json.dumps(arg)})"
        elif is_function_source(expression):
            expression = f"({expression})()"

        result = await self.send("Runtime.evaluate", {
            "expression": expression,
            "returnByValue": True,
            "awaitPromise": True
        })

        details = result.get("exceptionDetails")
        if details:
            exception = details.get("exception") or {}
            raise RuntimeError(exception.get("description") or details.get("text") or "Evaluation failed")

        return result.get("result", {}).get("value")

    async def close(self) -> None:
        if self._reader_task:
            self._reader_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._reader_task
            self._reader_task = None

        if self._ws:
            ws, self._ws = self._ws, None
            try:
                await ws.close()
            except Exception as e:
                logger.warning(f"[CDP] Error while closing socket: {e}")

        self._fail_pending(ConnectionError("CDP client closed"))
        self._requests.clear()
