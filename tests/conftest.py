"""测试公共夹具：生成测试图片、可控的模型客户端替身"""
import asyncio
import io
import json

import pytest
from PIL import Image

from autogen_core.models import CreateResult, RequestUsage


def make_image_bytes(fmt: str = "PNG", size=(200, 100), color=(30, 120, 200)) -> bytes:
    mode = "P" if fmt == "GIF" else "RGB"
    img = Image.new("RGB", size, color)
    if mode == "P":
        img = img.convert("P")
    buffer = io.BytesIO()
    img.save(buffer, format=fmt)
    return buffer.getvalue()


GOOD_PAYLOAD = {
    "score": 87,
    "generalIssues": ["Header spacing differs"],
    "specificIssues": [
        {
            "description": "Button color mismatch",
            "anchor": {"x": 0.1, "y": 0.2, "width": 0.15, "height": 0.05},
        }
    ],
}


class FakeModelClient:
    """只实现 create() 的模型客户端替身，记录每次调用。

    responses 中的元素：str → 作为响应内容返回；Exception → 抛出。
    设置 gate 后，create() 会等待 gate 打开再返回（用于模拟进行中的请求）。
    honor_cancellation=True 时，等待过程与传入的 cancellation_token 绑定，取消即中断。
    """

    def __init__(self, *responses, gate: asyncio.Event | None = None, honor_cancellation: bool = False) -> None:
        self._responses = list(responses)
        self.calls: list[dict] = []
        self.gate = gate
        self.honor_cancellation = honor_cancellation
        self.started: asyncio.Event | None = None

    async def create(self, messages, **kwargs):
        self.calls.append({"messages": messages, **kwargs})
        if self.started is not None:
            self.started.set()
        if self.gate is not None:
            waiter = asyncio.ensure_future(self.gate.wait())
            token = kwargs.get("cancellation_token")
            if self.honor_cancellation and token is not None:
                token.link_future(waiter)
            await waiter
        response = self._responses.pop(0)
        if isinstance(response, BaseException):
            raise response
        return CreateResult(
            finish_reason="stop",
            content=response,
            usage=RequestUsage(prompt_tokens=0, completion_tokens=0),
            cached=False,
        )


@pytest.fixture
def png_bytes() -> bytes:
    return make_image_bytes("PNG")


@pytest.fixture
def jpeg_bytes() -> bytes:
    return make_image_bytes("JPEG", color=(200, 60, 60))


@pytest.fixture
def good_response() -> str:
    return json.dumps(GOOD_PAYLOAD)
