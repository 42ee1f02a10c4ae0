"""
分析网关 — 调用外部视觉模型完成设计走查，并严格校验返回结果

流程：
  1. 将两张图片缩放到传输上限以内，组装为多模态请求
  2. 调用模型（json_output 模式），单次调用，不做重试、不做缓存
  3. 把响应当作不可信输入：JSON 解码 + pydantic 严格校验，全部通过才生成 Report

所有失败都被归一为 AnalysisFailed(reason)：
  - transport : 网络连接 / 超时
  - service   : 服务端或客户端 SDK 的其他错误
  - malformed : 响应结构不符合约定（MalformedResponse）
"""
import io
import json
import logging
import re
from typing import Any, Optional

from PIL import Image as PILImage
from pydantic import ValidationError

from autogen_core import CancellationToken, Image
from autogen_core.models import ChatCompletionClient

from agents.qa_reviewer import build_qa_messages
from config import settings
from messages.analysis_schema import AnalysisPayload
from messages.report_messages import Report
from messages.session_messages import ImageAsset
from rules.rules_manager import RulesManager
from utils.errors import AnalysisFailed, MalformedResponse

logger = logging.getLogger(__name__)

# 模型常把 JSON 包在 ```json ... ``` 代码块中
_FENCE_RE = re.compile(r"^```(?:json|JSON)?\s*(.*?)\s*```$", re.DOTALL)


# ============================================================
# 响应解析
# ============================================================


def parse_analysis_response(content: Any) -> Report:
    """将模型响应解析为 Report，任何结构问题都整体拒绝。

    Args:
        content: CreateResult.content（正常情况下为字符串）

    Raises:
        MalformedResponse: 响应不是文本、不是合法 JSON 或不符合报告结构

    Returns:
        校验通过的 Report
    """
    if not isinstance(content, str):
        raise MalformedResponse(f"响应不是文本: {type(content).__name__}")

    text = content.strip()
    match = _FENCE_RE.match(text)
    if match:
        text = match.group(1)

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise MalformedResponse(f"响应不是合法 JSON: {e}") from e

    if not isinstance(data, dict):
        raise MalformedResponse(f"响应顶层必须是对象，实际为 {type(data).__name__}")

    try:
        payload = AnalysisPayload.model_validate(data)
        return payload.to_report()
    except (ValidationError, ValueError) as e:
        raise MalformedResponse(str(e)) from e


# ============================================================
# 错误归类
# ============================================================


def classify_error(error: Exception) -> str:
    """判断一次调用失败属于网络问题还是服务端问题。"""
    if isinstance(error, (TimeoutError, ConnectionError)):
        return "transport"
    # openai.APIConnectionError / APITimeoutError / httpx.ConnectError 等
    error_type = type(error).__name__
    if "Timeout" in error_type or "Connect" in error_type:
        return "transport"
    return "service"


# ============================================================
# 网关
# ============================================================


class AnalysisGateway:
    """封装一次设计走查的模型调用。"""

    def __init__(
        self,
        model_client: ChatCompletionClient,
        rules_manager: Optional[RulesManager] = None,
        max_image_dimension: int = settings.MAX_IMAGE_DIMENSION,
    ) -> None:
        self._model_client = model_client
        self._rules_manager = rules_manager
        self._max_image_dimension = max_image_dimension

    def downscale(self, asset: ImageAsset) -> PILImage.Image:
        """解码图片并等比缩小到传输上限以内（RGB）。"""
        with PILImage.open(io.BytesIO(asset.data)) as img:
            rgb = img.convert("RGB")
        if max(rgb.size) > self._max_image_dimension:
            rgb.thumbnail((self._max_image_dimension, self._max_image_dimension))
            logger.debug(
                "[网关] %s 图片从 %dx%d 缩小到 %dx%d",
                asset.slot.value, asset.width, asset.height, rgb.width, rgb.height,
            )
        return rgb

    async def analyze(
        self,
        design: ImageAsset,
        live: ImageAsset,
        cancellation_token: Optional[CancellationToken] = None,
    ) -> Report:
        """对比设计稿与实际截图，返回校验通过的报告。

        Raises:
            AnalysisFailed: 网络、服务端或响应格式错误（MalformedResponse 为其子类）
        """
        if self._rules_manager is not None:
            self._rules_manager.reload()

        messages = build_qa_messages(
            Image.from_pil(self.downscale(design)),
            Image.from_pil(self.downscale(live)),
            self._rules_manager,
        )

        logger.info("[网关] 发起分析请求: design=%s live=%s", design.digest[:12], live.digest[:12])
        try:
            result = await self._model_client.create(
                messages,
                json_output=True,
                cancellation_token=cancellation_token,
            )
        except Exception as e:
            raise AnalysisFailed(classify_error(e), f"{type(e).__name__}: {e}") from e

        report = parse_analysis_response(result.content)
        logger.info(
            "[网关] 分析完成: score=%s, 通用问题 %d 条, 定位问题 %d 条",
            report.score, len(report.general_issues), len(report.specific_issues),
        )
        return report
