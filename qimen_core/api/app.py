"""
Qimen Proxy: HTTP 代理服务

持有上游密钥，只向客户端暴露两个转发接口：

- POST /api/qimen    表单转发到排盘 API，服务端注入 api_key
- POST /api/ai/chat  JSON 转发到 OpenAI 兼容接口，支持 SSE 字节级透传

Usage:
    qimen-server
    uvicorn qimen_core.api.app:app --host 127.0.0.1 --port 8000
"""

from typing import AsyncIterator, Optional
from urllib.parse import parse_qsl, urlencode

import httpx
import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, StreamingResponse
from starlette.background import BackgroundTask
from starlette.middleware.cors import CORSMiddleware

from qimen_core.config.settings import settings
from qimen_core.domain.exceptions import BusinessError, ConfigurationError
from qimen_core.infrastructure.logging.logger import logger
from qimen_core.providers.qimen_client import BROWSER_USER_AGENT
from qimen_core.providers.registry import build_completion_payload

INTERNAL_ERROR = {"error": "Internal Server Error"}

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "X-Accel-Buffering": "no",
}


class UpstreamRelay:
    """把上游流式响应逐块转发给客户端。

    转发的是解码后的字节，下游响应不带 Content-Encoding。上游读取失败时记录日志后
    继续抛出，由服务器中断分块响应。上游结束、出错或客户端断开时都会关闭上游连接，
    close() 可重复调用。
    """

    def __init__(self, client: httpx.AsyncClient, response: httpx.Response):
        self._client = client
        self._response = response
        self.closed = False

    async def iter_bytes(self, request: Request) -> AsyncIterator[bytes]:
        try:
            async for chunk in self._response.aiter_bytes():
                if await request.is_disconnected():
                    logger.info("Client disconnected, closing upstream stream")
                    break
                yield chunk
        except (httpx.HTTPError, httpx.StreamError) as e:
            logger.error("Upstream stream interrupted", extra={"extra": {"error": str(e)}})
            raise
        finally:
            await self.close()

    async def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        await self._response.aclose()
        await self._client.aclose()


def create_app(cfg=settings, transport: Optional[httpx.AsyncBaseTransport] = None) -> FastAPI:
    """创建代理应用。transport 用于替换上游连接（测试中传入 MockTransport）。"""

    app = FastAPI(title="Qimen Proxy", docs_url=None, redoc_url=None)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cfg.cors_origins,
        allow_credentials=True,
        allow_methods=["POST", "GET", "OPTIONS"],
        allow_headers=["*"],
    )

    @app.exception_handler(BusinessError)
    async def business_error_handler(request: Request, exc: BusinessError):
        logger.error(exc.message, extra={"extra": {"code": exc.code, "path": request.url.path}})
        return JSONResponse({"error": exc.message}, status_code=exc.http_status)

    def require_key(value: Optional[str], label: str) -> str:
        if not value:
            raise ConfigurationError(code="MISSING_CREDENTIAL", message=f"{label} API key not configured", http_status=500)
        return value

    def upstream_client() -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=cfg.http_timeout, transport=transport, trust_env=False)

    @app.get("/health")
    async def health():
        return {
            "status": "ok",
            "service": "qimen-proxy",
            "qimen_api_configured": bool(cfg.qimen_api_key),
            "openai_api_configured": bool(cfg.openai_api_key),
        }

    @app.post("/api/qimen")
    async def qimen_proxy(request: Request):
        api_key = require_key(cfg.qimen_api_key, "Qimen")
        try:
            body = (await request.body()).decode("utf-8")
            fields = [(k, v) for k, v in parse_qsl(body, keep_blank_values=True) if k != "api_key"]
            fields.append(("api_key", api_key))

            async with upstream_client() as client:
                resp = await client.post(
                    cfg.qimen_api_url,
                    content=urlencode(fields),
                    headers={
                        "Content-Type": "application/x-www-form-urlencoded",
                        "User-Agent": BROWSER_USER_AGENT,
                    },
                )
            if not resp.is_success:
                logger.warning(
                    "Qimen API error",
                    extra={"extra": {"status": resp.status_code, "body": resp.text[:200]}},
                )
                return JSONResponse(
                    {"error": f"Qimen API error: {resp.status_code}", "details": resp.text},
                    status_code=resp.status_code,
                )
            return JSONResponse(resp.json(), status_code=resp.status_code)
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Qimen proxy failed", extra={"extra": {"error": str(e)}})
            return JSONResponse(INTERNAL_ERROR, status_code=500)

    @app.post("/api/ai/chat")
    async def chat_proxy(request: Request):
        api_key = require_key(cfg.openai_api_key, "OpenAI")
        try:
            body = await request.json()
        except ValueError as e:
            logger.error("Invalid chat request body", extra={"extra": {"error": str(e)}})
            return JSONResponse(INTERNAL_ERROR, status_code=500)
        if not isinstance(body, dict):
            return JSONResponse(INTERNAL_ERROR, status_code=500)

        stream = bool(body.get("stream", False))
        payload = build_completion_payload(body.get("messages") or [], body.get("model") or cfg.default_model, stream)
        client = upstream_client()
        upstream_request = client.build_request(
            "POST",
            f"{cfg.openai_base_url.rstrip('/')}/chat/completions",
            json=payload,
            headers={
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
                "Accept-Encoding": "identity",
            },
        )
        try:
            resp = await client.send(upstream_request, stream=stream)
        except httpx.HTTPError as e:
            await client.aclose()
            logger.error("Chat upstream unreachable", extra={"extra": {"error": str(e)}})
            return JSONResponse(INTERNAL_ERROR, status_code=500)

        if not resp.is_success:
            try:
                text = (await resp.aread()).decode("utf-8", errors="replace")
            finally:
                await resp.aclose()
                await client.aclose()
            logger.warning("Chat upstream error", extra={"extra": {"status": resp.status_code, "body": text[:200]}})
            return JSONResponse(
                {"error": f"OPENAI API error: {resp.status_code} - {text}"},
                status_code=resp.status_code,
            )

        if not stream:
            try:
                return JSONResponse(resp.json(), status_code=resp.status_code)
            except ValueError as e:
                logger.error("Chat upstream returned invalid JSON", extra={"extra": {"error": str(e)}})
                return JSONResponse(INTERNAL_ERROR, status_code=500)
            finally:
                await resp.aclose()
                await client.aclose()

        relay = UpstreamRelay(client, resp)
        return StreamingResponse(
            relay.iter_bytes(request),
            media_type="text/event-stream",
            headers=SSE_HEADERS,
            background=BackgroundTask(relay.close),
        )

    return app


app = create_app()


def main() -> None:
    uvicorn.run(app, host=settings.server_host, port=settings.server_port)


if __name__ == "__main__":
    main()
