"""
模型客户端工厂 — 创建用于设计走查的视觉模型客户端

分析服务被当作一个不透明的 OpenAI 兼容接口使用：
  - 必须声明 vision 能力，否则 autogen 会在发送图片前拒绝请求
  - 关闭底层 SDK 的自动重试，失败直接交给会话状态机处理
"""
import logging

from autogen_ext.models.openai import OpenAIChatCompletionClient

from config import settings

logger = logging.getLogger(__name__)


def create_model_client(
    model: str | None = None,
    base_url: str | None = None,
    api_key: str | None = None,
) -> OpenAIChatCompletionClient:
    """根据配置创建视觉模型客户端。

    Args:
        model: 模型名称，默认使用 settings.MODEL_NAME
        base_url: 接口地址，默认使用 settings.MODEL_BASE_URL
        api_key: 接口密钥，默认使用 settings.MODEL_API_KEY

    Raises:
        ValueError: 未配置 API Key 时抛出

    Returns:
        OpenAIChatCompletionClient 实例
    """
    model = model or settings.MODEL_NAME
    base_url = base_url or settings.MODEL_BASE_URL
    api_key = api_key or settings.MODEL_API_KEY

    if not api_key:
        raise ValueError(
            "MODEL_API_KEY 未配置！\n"
            "请设置环境变量 MODEL_API_KEY 或在 .env 中配置。"
        )

    client = OpenAIChatCompletionClient(
        model=model,
        base_url=base_url,
        api_key=api_key,
        temperature=settings.MODEL_TEMPERATURE,
        timeout=settings.ANALYSIS_TIMEOUT_SECONDS,
        max_retries=0,
        model_info={
            "vision": True,
            "function_calling": False,
            "json_output": True,
            "structured_output": False,
            "family": settings.MODEL_FAMILY,
        },
    )
    logger.info("[模型] 已加载分析模型 %s (%s)", model, base_url)
    return client
