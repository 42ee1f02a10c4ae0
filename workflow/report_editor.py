"""
走查报告编辑器

对内存中的 Report 做增删改。每个操作先完成校验，再一次性写入，
校验失败时报告保持原样，不会留下编辑到一半的状态。
"""
from typing import Optional

from config import settings
from messages.report_messages import Anchor, AnchoredIssue, Report, Score
from utils.errors import InvalidEdit, IssueNotFound
from utils.geometry import PixelRect, pixels_to_anchor


def _clean_text(text: str) -> str:
    if not isinstance(text, str) or not text.strip():
        raise InvalidEdit("问题描述不能为空")
    return text.strip()


def _check_index(items: list, index: int, kind: str) -> None:
    if isinstance(index, bool) or not isinstance(index, int) or not 0 <= index < len(items):
        raise IssueNotFound(f"{kind}不存在: 下标 {index}（共 {len(items)} 条）")


def clamp_score(value: Score) -> Score:
    """将评分限制在 SCORE_MIN‑SCORE_MAX 范围内。"""
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value != value:
        raise InvalidEdit(f"评分必须是数字，实际为 {value!r}")
    return max(settings.SCORE_MIN, min(settings.SCORE_MAX, value))


class ReportEditor:
    """绑定一份 Report 的编辑器。"""

    def __init__(self, report: Report) -> None:
        self.report = report

    # ------------------------------------------------------------------
    # 通用问题
    # ------------------------------------------------------------------

    def add_general_issue(self, text: str) -> int:
        """追加一条通用问题，返回其下标。"""
        self.report.general_issues.append(_clean_text(text))
        return len(self.report.general_issues) - 1

    def edit_general_issue(self, index: int, text: str) -> None:
        _check_index(self.report.general_issues, index, "通用问题")
        self.report.general_issues[index] = _clean_text(text)

    def remove_general_issue(self, index: int) -> str:
        _check_index(self.report.general_issues, index, "通用问题")
        return self.report.general_issues.pop(index)

    # ------------------------------------------------------------------
    # 定位问题
    # ------------------------------------------------------------------

    def add_specific_issue(self, description: str, anchor: Anchor) -> int:
        """追加一条定位问题，返回其下标。"""
        issue = AnchoredIssue(description=_clean_text(description), anchor=anchor)
        self.report.specific_issues.append(issue)
        return len(self.report.specific_issues) - 1

    def add_specific_issue_from_pixels(
        self,
        description: str,
        rect: PixelRect,
        rendered_width: float,
        rendered_height: float,
    ) -> int:
        """在当前渲染尺寸下框选区域并追加定位问题。

        与渲染问题框使用同一套坐标换算（utils.geometry）。
        """
        text = _clean_text(description)
        try:
            anchor = pixels_to_anchor(rect, rendered_width, rendered_height)
        except ValueError as e:
            raise InvalidEdit(str(e)) from e
        return self.add_specific_issue(text, anchor)

    def edit_specific_issue(
        self,
        index: int,
        description: Optional[str] = None,
        anchor: Optional[Anchor] = None,
    ) -> None:
        """修改定位问题的描述和/或区域。"""
        _check_index(self.report.specific_issues, index, "定位问题")
        current = self.report.specific_issues[index]
        new_description = current.description if description is None else _clean_text(description)
        new_anchor = current.anchor if anchor is None else anchor
        self.report.specific_issues[index] = AnchoredIssue(description=new_description, anchor=new_anchor)

    def remove_specific_issue(self, index: int) -> AnchoredIssue:
        _check_index(self.report.specific_issues, index, "定位问题")
        return self.report.specific_issues.pop(index)

    # ------------------------------------------------------------------
    # 评分
    # ------------------------------------------------------------------

    def set_score(self, value: Score) -> Score:
        """设置评分（超出范围时截断），返回实际写入的值。"""
        self.report.score = clamp_score(value)
        return self.report.score

    def adjust_score(self, delta: Score) -> Score:
        """在当前评分基础上增减（超出范围时截断）。"""
        if isinstance(delta, bool) or not isinstance(delta, (int, float)):
            raise InvalidEdit(f"评分增量必须是数字，实际为 {delta!r}")
        return self.set_score(self.report.score + delta)
