"""
Line-delimited JSON-RPC loop for the generate_image tool.

One JSON request per input line, exactly one JSON response line per request.
"""
import asyncio
import json
import logging
import sys
from typing import Any, Dict, Set

from pydantic import ValidationError as PydanticValidationError

from ai.exceptions.imagen_exceptions import (
    InvalidParamsError,
    RpcError,
    RpcParseError,
    UnknownMethodError,
)
from media.image_generator import ImageService
from tools.rpc_models import (
    SUPPORTED_METHODS,
    GenerateImageCall,
    GetInfoCall,
    RpcErrorBody,
    RpcFailure,
    RpcResult,
    tool_call_adapter,
)
from utils.error_handler import handle_error
from utils.logging_config import get_logger

logger = get_logger(__name__)

# Generous line limit: requests are small, but prompts are user text
STDIN_LINE_LIMIT = 16 * 1024 * 1024


class ThreadedLineReader:
    """Reads lines from a blocking text stream on a worker thread"""

    def __init__(self, stream):
        self.stream = stream

    async def readline(self) -> str:
        return await asyncio.to_thread(self.stream.readline)


async def connect_stdio(stdin=None, stdout=None):
    """
    Wire stdin/stdout to the event loop.

    Pipes are read without blocking the loop; anything else (a terminal on
    some platforms, a regular file) falls back to a reader thread.
    """
    stdin = stdin or sys.stdin
    stdout = stdout or sys.stdout
    loop = asyncio.get_running_loop()
    reader = asyncio.StreamReader(limit=STDIN_LINE_LIMIT)
    try:
        await loop.connect_read_pipe(lambda: asyncio.StreamReaderProtocol(reader), stdin)
    except (OSError, ValueError, NotImplementedError) as e:
        logger.debug(f"stdin is not a pipe ({e}), reading it on a worker thread")
        return ThreadedLineReader(stdin), stdout
    return reader, stdout


def _describe_validation_error(error: PydanticValidationError) -> str:
    details = []
    for err in error.errors():
        location = ".".join(str(part) for part in err["loc"][1:]) or "request"
        details.append(f"{location}: {err['msg']}")
    return "; ".join(details)


class RpcServer:
    """
    Reads requests from ``reader`` and writes responses to ``writer``.

    Each line is handled in its own task, so a slow generation does not hold
    up get_info calls behind it. Responses are written whole under a lock and
    always carry the id of the request they answer.
    """

    def __init__(self, service: ImageService, reader, writer, logger: logging.Logger = logger):
        self.service = service
        self.reader = reader
        self.writer = writer
        self.logger = logger
        self._write_lock = asyncio.Lock()
        self._tasks: Set[asyncio.Task] = set()

    async def serve(self) -> None:
        """Handle lines until the input stream closes, then wait for in-flight requests"""
        while True:
            try:
                line = await self.reader.readline()
            except ValueError as e:
                # StreamReader drops an over-long line and reports it here
                handled = handle_error(RpcParseError(e), {"stage": "read"}, log=self.logger)
                await self.send(RpcFailure(id=None, error=RpcErrorBody(message=handled.user_message)).model_dump())
                continue

            if not line:
                break
            if isinstance(line, bytes):
                line = line.decode("utf-8", errors="replace")
            if not line.strip():
                continue

            task = asyncio.create_task(self.handle_line(line))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

        if self._tasks:
            self.logger.info(f"Input closed, waiting for {len(self._tasks)} in-flight request(s)")
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def handle_line(self, line: str) -> None:
        response = await self.process_line(line)
        await self.send(response)

    async def process_line(self, line: str) -> Dict[str, Any]:
        """Turn one request line into its response envelope"""
        request_id = None
        method = None
        try:
            try:
                raw = json.loads(line)
            except json.JSONDecodeError as e:
                raise RpcParseError(e)

            if not isinstance(raw, dict):
                raise InvalidParamsError("request must be a JSON object")

            request_id = raw.get("id")
            method = raw.get("method")
            if method not in SUPPORTED_METHODS:
                raise UnknownMethodError(method)

            try:
                call = tool_call_adapter.validate_python(raw)
            except PydanticValidationError as e:
                raise InvalidParamsError(_describe_validation_error(e))

            result = await self.dispatch(call)
            return RpcResult(id=request_id, result=result).model_dump()

        except RpcError as e:
            context = {"method": method, "id": request_id}
            if isinstance(e, RpcParseError):
                context["request_line"] = line[:200]
            handled = handle_error(e, context, log=self.logger)
            return RpcFailure(id=request_id, error=RpcErrorBody(message=handled.user_message)).model_dump()

        except Exception as e:
            handled = handle_error(e, {"method": method, "id": request_id}, log=self.logger)
            return RpcFailure(id=request_id, error=RpcErrorBody(message=handled.user_message)).model_dump()

    async def dispatch(self, call) -> Any:
        if isinstance(call, GetInfoCall):
            return self.service.get_info().model_dump()
        if isinstance(call, GenerateImageCall):
            return await self.service.generate_image(call.params.prompt, call.params.aspect_ratio)
        raise UnknownMethodError(getattr(call, "method", None))

    async def send(self, response: Dict[str, Any]) -> None:
        data = json.dumps(response) + "\n"
        async with self._write_lock:
            self.writer.write(data)
            self.writer.flush()
