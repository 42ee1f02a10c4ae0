"""
设计走查分析指令

职责：
  - 生成发给视觉模型的固定指令（输出结构 + 走查规则）
  - 将设计稿与实际截图组装为一条多模态用户消息

注意：本模块 **不负责** 调用模型和解析响应，这些由 AnalysisGateway 负责。
"""
from typing import List, Optional

from autogen_core import Image
from autogen_core.models import LLMMessage, SystemMessage, UserMessage

from rules.rules_manager import RulesManager


def build_qa_instruction(rules_manager: Optional[RulesManager] = None) -> str:
    """生成设计走查的系统指令。

    Args:
        rules_manager: 规则管理器实例，提供额外的走查规则（可选）

    Returns:
        系统指令文本
    """
    rules_prompt = rules_manager.get_rules_prompt() if rules_manager else ""

    instruction = """你是 **UI 设计走查专家**。

━━━━━━━━━━━━━━━━━━━━
核心职责
━━━━━━━━━━━━━━━━━━━━
对比用户提供的两张图片：
  - 第一张标记为 design：设计稿
  - 第二张标记为 live：开发完成后的实际页面截图
找出实际截图相对设计稿的视觉差异，并给出整体还原度评分。

━━━━━━━━━━━━━━━━━━━━
输出格式（只输出 JSON，不要输出任何其他文字）
━━━━━━━━━━━━━━━━━━━━
{
  "score": <0 到 100 的数字，100 表示完全还原>,
  "generalIssues": ["<无法定位到具体区域的整体问题>", ...],
  "specificIssues": [
    {
      "description": "<问题描述>",
      "anchor": {"x": <0‑1>, "y": <0‑1>, "width": <0‑1>, "height": <0‑1>}
    }
  ]
}

━━━━━━━━━━━━━━━━━━━━
坐标约定
━━━━━━━━━━━━━━━━━━━━
- anchor 描述问题在 **live 实际截图** 上的矩形区域，不是设计稿上的区域
- x / y 为矩形左上角，width / height 为矩形宽高
- 所有值都是相对 live 图片宽高的比例，取值范围 0 到 1
- 没有差异时 generalIssues 和 specificIssues 返回空数组
"""

    if rules_prompt:
        instruction = f"{rules_prompt}\n\n{instruction}"
    return instruction


def build_qa_messages(
    design_image: Image,
    live_image: Image,
    rules_manager: Optional[RulesManager] = None,
) -> List[LLMMessage]:
    """组装一次分析请求的完整消息列表。

    Args:
        design_image: 设计稿图片
        live_image: 实际截图
        rules_manager: 规则管理器实例（可选）

    Returns:
        [SystemMessage, UserMessage] 消息列表
    """
    return [
        SystemMessage(content=build_qa_instruction(rules_manager)),
        UserMessage(
            content=[
                "design（设计稿）:",
                design_image,
                "live（实际截图）:",
                live_image,
                "请按约定的 JSON 结构输出走查报告。",
            ],
            source="user",
        ),
    ]
