"""
走查报告数据类 — 与分析服务、编辑器解耦，独立存放

坐标约定：Anchor 使用相对实际截图宽高的归一化坐标（0‑1），
与图片实际渲染的像素尺寸无关。
"""
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Union

from config import settings

Score = Union[int, float]


def _check_unit(name: str, value: float) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{name} 必须是数字，实际为 {value!r}")
    if not math.isfinite(value) or not 0 <= value <= 1:
        raise ValueError(f"{name} 必须在 [0, 1] 范围内，实际为 {value}")


def check_score(score: Score) -> None:
    """校验评分是否为 SCORE_MIN‑SCORE_MAX 范围内的数字。"""
    if isinstance(score, bool) or not isinstance(score, (int, float)):
        raise ValueError(f"score 必须是数字，实际为 {score!r}")
    if not math.isfinite(score) or not settings.SCORE_MIN <= score <= settings.SCORE_MAX:
        raise ValueError(
            f"score 必须在 [{settings.SCORE_MIN}, {settings.SCORE_MAX}] 范围内，实际为 {score}"
        )


@dataclass(frozen=True)
class Anchor:
    """实际截图上的归一化矩形区域"""

    x: float
    y: float
    width: float
    height: float

    def __post_init__(self) -> None:
        for name in ("x", "y", "width", "height"):
            _check_unit(name, getattr(self, name))

    def to_dict(self) -> Dict[str, float]:
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}


@dataclass
class AnchoredIssue:
    """定位到实际截图某个区域的具体问题"""

    description: str
    anchor: Anchor

    def to_dict(self) -> Dict[str, Any]:
        return {"description": self.description, "anchor": self.anchor.to_dict()}


@dataclass
class Report:
    """一次走查会话的输出：总分 + 通用问题 + 定位问题"""

    score: Score = settings.MANUAL_DEFAULT_SCORE
    general_issues: List[str] = field(default_factory=list)
    specific_issues: List[AnchoredIssue] = field(default_factory=list)

    def __post_init__(self) -> None:
        check_score(self.score)

    @classmethod
    def manual(cls) -> "Report":
        """手动创建的空白报告：满分、无问题。"""
        return cls(score=settings.MANUAL_DEFAULT_SCORE)

    def to_dict(self) -> Dict[str, Any]:
        """转换为与分析服务响应一致的结构（camelCase 字段名）。"""
        return {
            "score": self.score,
            "generalIssues": list(self.general_issues),
            "specificIssues": [issue.to_dict() for issue in self.specific_issues],
        }
