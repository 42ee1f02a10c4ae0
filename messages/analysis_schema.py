"""
分析服务响应结构 — 用 pydantic 对不可信的模型输出做严格校验

字段名与分析服务约定一致（camelCase），校验通过后再转换为 Report 数据类。
strict 模式下布尔值、数字字符串等都不会被“宽松转换”成数字。
"""
from typing import List

from pydantic import BaseModel, ConfigDict, Field

from config import settings
from messages.report_messages import Anchor, AnchoredIssue, Report


class AnchorPayload(BaseModel):
    model_config = ConfigDict(strict=True, extra="forbid")

    x: float = Field(ge=0, le=1)
    y: float = Field(ge=0, le=1)
    width: float = Field(ge=0, le=1)
    height: float = Field(ge=0, le=1)


class SpecificIssuePayload(BaseModel):
    model_config = ConfigDict(strict=True, extra="forbid")

    description: str
    anchor: AnchorPayload


class AnalysisPayload(BaseModel):
    """分析服务返回的完整报告"""

    model_config = ConfigDict(strict=True, extra="forbid", populate_by_name=True)

    score: float = Field(ge=settings.SCORE_MIN, le=settings.SCORE_MAX)
    general_issues: List[str] = Field(alias="generalIssues")
    specific_issues: List[SpecificIssuePayload] = Field(alias="specificIssues")

    def to_report(self) -> Report:
        score = int(self.score) if self.score.is_integer() else self.score
        return Report(
            score=score,
            general_issues=list(self.general_issues),
            specific_issues=[
                AnchoredIssue(
                    description=item.description,
                    anchor=Anchor(
                        x=item.anchor.x,
                        y=item.anchor.y,
                        width=item.anchor.width,
                        height=item.anchor.height,
                    ),
                )
                for item in self.specific_issues
            ],
        )
