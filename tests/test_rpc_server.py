"""Tests for the line-delimited JSON-RPC loop"""
import asyncio
import base64
import io
import json
import os
import re
import sys
import tempfile
import unittest
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import httpx

# Add the project root to the Python path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from ai.imagen import ImagenClient
from media.artifact_store import ArtifactStore
from media.image_generator import ImageService
from tools.rpc_server import RpcServer, ThreadedLineReader


class LineReader:
    """In-memory stand-in for an asyncio.StreamReader"""

    def __init__(self, lines):
        self.lines = list(lines)

    async def readline(self):
        if not self.lines:
            return b""
        line = self.lines.pop(0)
        return line if line.endswith("\n") else line + "\n"


def request_line(request_id, method, params=None) -> str:
    request = {"id": request_id, "method": method}
    if params is not None:
        request["params"] = params
    return json.dumps(request)


class RpcTestCase(unittest.IsolatedAsyncioTestCase):
    def make_server(self, lines, service=None):
        self.output = io.StringIO()
        self.service = service or MagicMock()
        return RpcServer(self.service, LineReader(lines), self.output)

    def responses(self):
        return [json.loads(line) for line in self.output.getvalue().splitlines()]


class TestRpcDispatch(RpcTestCase):
    """Dispatch and error envelopes"""

    async def test_get_info(self):
        service = ImageService(AsyncMock(), MagicMock(), "127.0.0.1", 9981)
        server = self.make_server([request_line(7, "get_info")], service)

        await server.serve()

        [response] = self.responses()
        self.assertEqual(response["id"], 7)
        self.assertEqual(response["result"]["server_info"], {"name": "imagen3-mcp", "version": "0.1.0"})
        self.assertEqual(response["result"]["capabilities"], {"tools": True})
        self.assertNotIn("error", response)

    async def test_generate_image_passes_params(self):
        service = MagicMock()
        service.generate_image = AsyncMock(return_value="http://127.0.0.1:9981/images/x.png")
        server = self.make_server(
            [request_line("abc", "generate_image", {"prompt": "a cat", "aspect_ratio": "4:3"})],
            service,
        )

        await server.serve()

        service.generate_image.assert_awaited_once_with("a cat", "4:3")
        self.assertEqual(self.responses(), [{"id": "abc", "result": "http://127.0.0.1:9981/images/x.png"}])

    async def test_soft_error_is_a_result(self):
        service = MagicMock()
        service.generate_image = AsyncMock(return_value="Invalid aspect ratio: 2:1, supported values are: ...")
        server = self.make_server(
            [request_line(1, "generate_image", {"prompt": "a cat", "aspect_ratio": "2:1"})],
            service,
        )

        await server.serve()

        [response] = self.responses()
        self.assertIn("result", response)
        self.assertNotIn("error", response)

    async def test_non_string_aspect_ratio_is_a_result(self):
        client = MagicMock()
        client.generate = AsyncMock()
        service = ImageService(client, MagicMock(), "127.0.0.1", 9981)
        server = self.make_server(
            ['{"id":1,"method":"generate_image","params":{"prompt":"a","aspect_ratio":2}}'],
            service,
        )

        await server.serve()

        self.assertEqual(self.responses(), [{
            "id": 1,
            "result": "Invalid aspect ratio: 2, supported values are: 1:1, 3:4, 4:3, 9:16, 16:9",
        }])
        client.generate.assert_not_awaited()

    async def test_unknown_method(self):
        server = self.make_server([request_line(5, "foo", {"x": 1})])

        await server.serve()

        self.assertEqual(self.responses(), [{"id": 5, "error": {"message": "Unknown method: foo"}}])
        self.assertEqual(self.service.mock_calls, [], "unknown methods have no side effects")

    async def test_missing_prompt_is_invalid_params(self):
        server = self.make_server([request_line(3, "generate_image", {"aspect_ratio": "1:1"})])

        await server.serve()

        [response] = self.responses()
        self.assertEqual(response["id"], 3)
        self.assertTrue(response["error"]["message"].startswith("Invalid params:"))
        self.assertIn("prompt", response["error"]["message"])

    async def test_missing_params_is_invalid_params(self):
        server = self.make_server([request_line(4, "generate_image")])

        await server.serve()

        [response] = self.responses()
        self.assertEqual(response["id"], 4)
        self.assertIn("Invalid params", response["error"]["message"])

    async def test_malformed_json_answered_with_null_id(self):
        server = self.make_server(['{"id": 9, "method": "get_info"', request_line(10, "foo")])

        await server.serve()

        first, second = self.responses()
        self.assertIsNone(first["id"])
        self.assertTrue(first["error"]["message"].startswith("Parse error:"))
        self.assertEqual(second["id"], 10, "loop keeps running after a malformed line")

    async def test_non_object_request(self):
        server = self.make_server(["[1, 2, 3]"])

        await server.serve()

        [response] = self.responses()
        self.assertIsNone(response["id"])
        self.assertIn("error", response)

    async def test_blank_lines_ignored(self):
        server = self.make_server(["", "   ", request_line(1, "foo")])

        await server.serve()

        self.assertEqual(len(self.responses()), 1)

    async def test_unexpected_exception_does_not_stop_loop(self):
        service = MagicMock()
        service.generate_image = AsyncMock(side_effect=RuntimeError("kaboom"))
        server = self.make_server(
            [request_line(1, "generate_image", {"prompt": "x"}), request_line(2, "foo")],
            service,
        )

        await server.serve()

        responses = {r["id"]: r for r in self.responses()}
        self.assertEqual(responses[1]["error"]["message"], "kaboom")
        self.assertEqual(responses[2]["error"]["message"], "Unknown method: foo")

    async def test_unexpected_exception_logged_once_with_traceback(self):
        service = MagicMock()
        error = RuntimeError("kaboom")
        service.generate_image = AsyncMock(side_effect=error)
        log = MagicMock()
        self.output = io.StringIO()
        server = RpcServer(service, LineReader([request_line(1, "generate_image", {"prompt": "x"})]),
                           self.output, logger=log)

        await server.serve()

        log.exception.assert_not_called()
        self.assertEqual(log.log.call_count, 1)
        self.assertIs(log.log.call_args.kwargs["exc_info"], error)
        self.assertEqual(self.responses(), [{"id": 1, "error": {"message": "kaboom"}}])

    async def test_id_preserved_verbatim(self):
        ids = [0, "str-id", {"nested": [1, 2]}, 1.5, None]
        server = self.make_server([request_line(i, "foo") for i in ids])

        await server.serve()

        self.assertEqual([r["id"] for r in self.responses()], ids)


class TestRpcConcurrency(RpcTestCase):
    """Correlation ids under concurrent generation"""

    async def test_ids_match_despite_different_latencies(self):
        delays = {"a": 0.05, "b": 0.0, "c": 0.02}

        async def generate_image(prompt, aspect_ratio=None):
            await asyncio.sleep(delays[prompt])
            return f"url-for-{prompt}"

        service = MagicMock()
        service.generate_image = generate_image
        server = self.make_server(
            [request_line(prompt, "generate_image", {"prompt": prompt}) for prompt in ["a", "b", "c"]],
            service,
        )

        await server.serve()

        responses = self.responses()
        self.assertEqual(len(responses), 3)
        for response in responses:
            self.assertEqual(response["result"], f"url-for-{response['id']}")

    async def test_waits_for_in_flight_requests_on_eof(self):
        finished = asyncio.Event()

        async def generate_image(prompt, aspect_ratio=None):
            await asyncio.sleep(0.02)
            finished.set()
            return "done"

        service = MagicMock()
        service.generate_image = generate_image
        server = self.make_server([request_line(1, "generate_image", {"prompt": "x"})], service)

        await server.serve()

        self.assertTrue(finished.is_set())
        self.assertEqual(self.responses(), [{"id": 1, "result": "done"}])


class TestThreadedLineReader(unittest.IsolatedAsyncioTestCase):
    async def test_reads_until_eof(self):
        reader = ThreadedLineReader(io.StringIO("first\nsecond\n"))

        self.assertEqual(await reader.readline(), "first\n")
        self.assertEqual(await reader.readline(), "second\n")
        self.assertEqual(await reader.readline(), "")


class TestEndToEnd(RpcTestCase):
    """generate_image from request line to file on disk, with a stubbed provider"""

    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.images_dir = Path(self.temp_dir.name) / "artifacts" / "images"
        self.images_dir.mkdir(parents=True)

    def tearDown(self):
        self.temp_dir.cleanup()

    async def test_generate_image_round_trip(self):
        image_bytes = b"\x89PNG\r\n\x1a\nred-cube"
        sent = []

        def handler(request):
            sent.append(json.loads(request.content))
            return httpx.Response(200, json={"predictions": [
                {"mimeType": "image/png", "bytesBase64Encoded": base64.b64encode(image_bytes).decode()}
            ]})

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http_client:
            client = ImagenClient(api_key="test-key", http_client=http_client)
            service = ImageService(client, ArtifactStore(self.images_dir), "127.0.0.1", 9981)
            server = self.make_server(
                ['{"id":1,"method":"generate_image","params":{"prompt":"a red cube","aspect_ratio":"16:9"}}'],
                service,
            )

            await server.serve()

        [response] = self.responses()
        self.assertEqual(response["id"], 1)
        match = re.fullmatch(r"http://127\.0\.0\.1:9981/images/(.+\.png)", response["result"])
        self.assertIsNotNone(match, response["result"])

        files = os.listdir(self.images_dir)
        self.assertEqual(files, [match.group(1)])
        self.assertEqual((self.images_dir / files[0]).read_bytes(), image_bytes)
        self.assertEqual(sent[0]["parameters"], {"sampleCount": 1, "aspectRatio": "16:9"})


if __name__ == '__main__':
    unittest.main()
