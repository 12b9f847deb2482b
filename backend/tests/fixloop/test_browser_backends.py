"""
Unit tests for the browser backends.

CDP events are fed straight into the client's handlers and commands are
answered by a mocked send(); the Playwright page is a mock.
"""

import json
import pytest
import sys
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import AsyncMock

sys.path.insert(0, str(Path(__file__).parent.parent.parent / "app"))

from fixloop.browser.base import BackendKind, ErrorBuffer
from fixloop.browser.cdp_client import CDPClient, is_function_source
from fixloop.browser.playwright_client import PlaywrightClient
from fixloop.detection.error_detector import ErrorDetector, REACT_ERROR_PROBE
from fixloop.models import ConsoleError, NetworkError


class TestErrorBuffer:
    """Test the bounded error buffer."""

    def test_drain_returns_in_order_and_empties(self):
        """Test drain hands back everything once."""
        buffer = ErrorBuffer()
        buffer.push(ConsoleError(message="a"))
        buffer.push(ConsoleError(message="b"))

        assert [e.message for e in buffer.drain()] == ["a", "b"]
        assert buffer.drain() == []

    def test_drops_oldest_when_full(self):
        """Test a full buffer keeps the newest entries."""
        buffer = ErrorBuffer(max_size=2)
        for message in ("a", "b", "c"):
            buffer.push(ConsoleError(message=message))

        assert len(buffer) == 2
        assert buffer.dropped == 1
        assert [e.message for e in buffer.drain()] == ["b", "c"]

    def test_clear(self):
        buffer = ErrorBuffer()
        buffer.push(ConsoleError(message="a"))

        buffer.clear()

        assert len(buffer) == 0


class TestCDPTargets:
    """Test page target selection."""

    def test_prefers_real_page(self):
        """Test about:blank and workers are skipped when a real page exists."""
        targets = [
            {"type": "service_worker", "url": "http://localhost:3000/sw.js"},
            {"type": "page", "url": "about:blank"},
            {"type": "page", "url": "http://localhost:3000/"},
        ]

        assert CDPClient.select_target(targets)["url"] == "http://localhost:3000/"

    def test_falls_back_to_first(self):
        """Test the first target is used when no real page exists."""
        targets = [{"type": "page", "url": "about:blank"}]

        assert CDPClient.select_target(targets) is targets[0]

    def test_no_targets(self):
        assert CDPClient.select_target([]) is None


class TestCDPEvents:
    """Test CDP events become buffered errors."""

    def test_exception_thrown(self):
        """Test uncaught exceptions are console errors with 1-based positions."""
        client = CDPClient()

        client._on_exception_thrown({"exceptionDetails": {
            "text": "Uncaught",
            "exception": {"description": "TypeError: Cannot read properties of null"},
            "url": "http://localhost:3000/static/js/main.js",
            "lineNumber": 41,
            "columnNumber": 9,
            "stackTrace": {"callFrames": [
                {"functionName": "render", "url": "main.js", "lineNumber": 41, "columnNumber": 9}
            ]},
        }})

        [error] = client.errors.drain()
        assert isinstance(error, ConsoleError)
        assert error.message == "TypeError: Cannot read properties of null"
        assert error.line == 42
        assert error.column == 10
        assert "render@main.js" in error.stack

    def test_console_api_error(self):
        """Test console.error calls are captured."""
        client = CDPClient()

        client._on_console_api_called({
            "type": "error",
            "args": [{"type": "string", "value": "Failed to load"}, {"type": "number", "value": 3}],
        })

        [error] = client.errors.drain()
        assert error.message == "Failed to load 3"
        assert error.level == "error"

    def test_console_api_log_ignored(self):
        """Test console.log calls are ignored."""
        client = CDPClient()

        client._on_console_api_called({"type": "log", "args": [{"type": "string", "value": "hi"}]})

        assert client.errors.drain() == []

    def test_log_entry_warning(self):
        """Test browser log warnings are captured."""
        client = CDPClient()

        client._on_log_entry({"entry": {"level": "warning", "text": "Deprecated API", "source": "javascript"}})

        [error] = client.errors.drain()
        assert error.level == "warning"
        assert error.context == {"source": "javascript"}

    def test_log_entry_info_ignored(self):
        client = CDPClient()

        client._on_log_entry({"entry": {"level": "info", "text": "hello"}})

        assert len(client.errors) == 0

    def test_http_error_response(self):
        """Test responses at or above 400 become network errors with the request method."""
        client = CDPClient()
        client._on_request_will_be_sent({
            "requestId": "7",
            "request": {"method": "POST", "url": "http://localhost:3000/api/login"},
        })

        client._on_response_received({
            "requestId": "7",
            "response": {"status": 401, "statusText": "Unauthorized", "url": "http://localhost:3000/api/login"},
        })

        [error] = client.errors.drain()
        assert isinstance(error, NetworkError)
        assert error.status == 401
        assert error.method == "POST"
        assert error.request_url == "http://localhost:3000/api/login"
        assert error.message == "Network error: 401 Unauthorized"

    def test_successful_response_ignored(self):
        client = CDPClient()

        client._on_response_received({"requestId": "1", "response": {"status": 304, "url": "x"}})

        assert len(client.errors) == 0

    def test_loading_failed(self):
        """Test transport failures become network errors."""
        client = CDPClient()
        client._on_request_will_be_sent({
            "requestId": "9",
            "request": {"method": "GET", "url": "http://localhost:4000/api/items"},
        })

        client._on_loading_failed({"requestId": "9", "errorText": "net::ERR_CONNECTION_REFUSED"})

        [error] = client.errors.drain()
        assert error.message == "Network request failed: net::ERR_CONNECTION_REFUSED"
        assert error.request_url == "http://localhost:4000/api/items"
        assert error.status is None

    def test_dispatch_routes_events_and_waiters(self):
        """Test events reach handlers, and a failing handler does not stop the rest."""
        client = CDPClient()
        seen = []
        client.on("Page.frameNavigated", lambda params: 1 / 0)
        client.on("Page.frameNavigated", seen.append)

        client._dispatch({"method": "Page.frameNavigated", "params": {"frame": {}}})

        assert seen == [{"frame": {}}]


class TestCDPCommands:
    """Test navigate and evaluate over a mocked command channel."""

    def connected_client(self, send):
        client = CDPClient()
        client._ws = AsyncMock()
        client.send = send
        return client

    @pytest.mark.asyncio
    async def test_evaluate_passes_arg_as_json(self):
        """Test the argument is embedded as a JSON literal."""
        send = AsyncMock(return_value={"result": {"type": "object", "value": {"success": True}}})
        client = self.connected_client(send)
        arg = {"selector": "a[title=\"x\"]", "value": "'); alert(1); ('"}

        result = await client.evaluate("(d) => d", arg)

        assert result == {"success": True}
        method, params = send.await_args.args
        assert method == "Runtime.evaluate"
        assert params["expression"] == f"((d) => d)({json.dumps(arg)})"
        assert params["returnByValue"] is True

    @pytest.mark.asyncio
    async def test_evaluate_calls_function_without_arg(self):
        """Test a function expression is invoked even when no argument is given."""
        send = AsyncMock(return_value={"result": {"type": "number", "value": 3}})
        client = self.connected_client(send)

        await client.evaluate("() => 1 + 2")

        _, params = send.await_args.args
        assert params["expression"] == "(() => 1 + 2)()"

    @pytest.mark.asyncio
    async def test_evaluate_plain_expression_untouched(self):
        """Test value expressions are sent as written."""
        send = AsyncMock(return_value={"result": {"type": "string", "value": "Home"}})
        client = self.connected_client(send)

        assert await client.evaluate("document.title") == "Home"

        _, params = send.await_args.args
        assert params["expression"] == "document.title"

    @pytest.mark.asyncio
    async def test_react_boundary_detected_over_cdp(self):
        """Test the React boundary probe runs as a call and its findings come back."""
        async def send(method, params=None):
            # a page with one error boundary showing "Something went wrong"
            if params["expression"] == f"({REACT_ERROR_PROBE})()":
                return {"result": {"type": "object", "value": [
                    {"message": "Something went wrong", "errorBoundary": "App"}
                ]}}
            return {"result": {"type": "function", "className": "Function"}}

        client = self.connected_client(send)

        errors = await ErrorDetector(client).detect_react_errors()

        assert len(errors) == 1
        assert errors[0].message == "Something went wrong"
        assert errors[0].error_boundary == "App"

    def test_function_source_detection(self):
        """Test which expressions count as functions to call."""
        assert is_function_source(REACT_ERROR_PROBE)
        assert is_function_source("(descriptor) => descriptor")
        assert is_function_source("async () => await fetch('/')")
        assert is_function_source("el => el.id")
        assert is_function_source("function () { return 1; }")
        assert not is_function_source("document.title")
        assert not is_function_source("(1 + 2)")

    @pytest.mark.asyncio
    async def test_evaluate_exception(self):
        """Test script exceptions are raised."""
        send = AsyncMock(return_value={
            "result": {},
            "exceptionDetails": {"text": "Uncaught", "exception": {"description": "ReferenceError: y"}},
        })
        client = self.connected_client(send)

        with pytest.raises(RuntimeError, match="ReferenceError"):
            await client.evaluate("y")

    @pytest.mark.asyncio
    async def test_navigate_clears_buffer_and_waits_for_load(self):
        """Test navigation starts with an empty buffer and ends on the load event."""
        client = CDPClient()
        client._ws = AsyncMock()
        client.errors.push(ConsoleError(message="stale"))

        async def send(method, params=None):
            client._dispatch({"method": "Page.loadEventFired", "params": {"timestamp": 1}})
            return {"frameId": "1"}

        client.send = send

        await client.navigate("http://localhost:3000")

        assert client.errors.drain() == []
        assert client._waiters.get("Page.loadEventFired", []) == []

    @pytest.mark.asyncio
    async def test_navigate_error_text(self):
        """Test a failed navigation raises."""
        client = CDPClient()
        client._ws = AsyncMock()
        client.send = AsyncMock(return_value={"errorText": "net::ERR_NAME_NOT_RESOLVED"})

        with pytest.raises(RuntimeError, match="ERR_NAME_NOT_RESOLVED"):
            await client.navigate("http://nowhere.invalid")

    @pytest.mark.asyncio
    async def test_requires_connection(self):
        """Test commands fail before connect."""
        client = CDPClient()

        with pytest.raises(RuntimeError, match="not connected"):
            await client.navigate("http://localhost:3000")

    @pytest.mark.asyncio
    async def test_connect_failure_is_connection_error(self):
        """Test discovery failures surface as ConnectionError."""
        client = CDPClient()
        client.list_targets = AsyncMock(side_effect=OSError("connection refused"))

        with pytest.raises(ConnectionError, match="Failed to connect to CDP"):
            await client.connect()

        assert client.is_connected is False

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self):
        client = CDPClient()

        await client.close()
        await client.close()

        assert client.is_connected is False


class TestPlaywrightClient:
    """Test the Playwright fallback backend."""

    def client_with_page(self, mock_page):
        client = PlaywrightClient(timeout_ms=5000)
        client.page = mock_page
        return client

    def test_kind(self):
        assert PlaywrightClient.kind == BackendKind.PLAYWRIGHT

    def test_console_warning_captured(self, mock_page):
        """Test console warnings keep their level and location."""
        client = self.client_with_page(mock_page)
        msg = SimpleNamespace(
            type="warning",
            text="Each child in a list should have a unique key",
            location={"url": "http://localhost:3000/static/js/bundle.js", "lineNumber": 12, "columnNumber": 3},
        )

        client._on_console(msg)

        [error] = client.errors.drain()
        assert error.level == "warning"
        assert error.line == 12

    def test_console_log_ignored(self, mock_page):
        client = self.client_with_page(mock_page)

        client._on_console(SimpleNamespace(type="log", text="hi", location={}))

        assert len(client.errors) == 0

    def test_page_error(self, mock_page):
        """Test uncaught page errors are console errors."""
        client = self.client_with_page(mock_page)

        client._on_page_error(SimpleNamespace(message="x is not defined", stack="at App"))

        [error] = client.errors.drain()
        assert error.message == "x is not defined"
        assert error.stack == "at App"

    def test_error_response(self, mock_page):
        """Test 5xx responses become network errors."""
        client = self.client_with_page(mock_page)
        response = SimpleNamespace(
            status=500,
            status_text="Internal Server Error",
            url="http://localhost:3000/api/items",
            request=SimpleNamespace(method="GET"),
        )

        client._on_response(response)

        [error] = client.errors.drain()
        assert error.status == 500
        assert error.method == "GET"

    def test_request_failed(self, mock_page):
        client = self.client_with_page(mock_page)
        request = SimpleNamespace(
            failure="net::ERR_FAILED", url="http://localhost:3000/a.js", method="GET", resource_type="script"
        )

        client._on_request_failed(request)

        [error] = client.errors.drain()
        assert error.message == "Network request failed: net::ERR_FAILED"

    @pytest.mark.asyncio
    async def test_navigate(self, mock_page):
        """Test navigation clears the buffer and waits for network idle."""
        client = self.client_with_page(mock_page)
        client.errors.push(ConsoleError(message="stale"))

        await client.navigate("http://localhost:3000/login")

        mock_page.goto.assert_awaited_once_with(
            "http://localhost:3000/login", wait_until="networkidle", timeout=5000
        )
        assert client.errors.drain() == []

    @pytest.mark.asyncio
    async def test_evaluate_with_arg(self, mock_page):
        """Test arguments are handed to Playwright separately."""
        client = self.client_with_page(mock_page)

        await client.evaluate("(d) => d", {"selector": "#a"})

        mock_page.evaluate.assert_awaited_once_with("(d) => d", {"selector": "#a"})

    @pytest.mark.asyncio
    async def test_evaluate_without_page(self):
        with pytest.raises(RuntimeError):
            await PlaywrightClient().evaluate("1")

    @pytest.mark.asyncio
    async def test_close_resets_state(self, mock_page, mock_browser):
        """Test close releases everything and can be repeated."""
        client = self.client_with_page(mock_page)
        client.browser = mock_browser

        await client.close()
        await client.close()

        mock_browser.close.assert_awaited_once()
        assert client.is_connected is False
        assert client.get_page() is None
