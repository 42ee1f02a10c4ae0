"""
走查报告渲染工具

  - render_report()          : 计算问题框在当前渲染尺寸下的像素位置（供前端叠加显示）
  - draw_overlays()          : 在实际截图上画出带编号的问题框，输出 PNG
  - format_report_markdown() : 生成 Markdown 文本报告（CLI 输出）

问题框位置统一通过 utils.geometry.anchor_to_pixels 换算。
"""
import io
from dataclasses import dataclass, field
from typing import List

from PIL import Image, ImageDraw

from messages.report_messages import Report, Score
from messages.session_messages import ImageAsset
from utils.geometry import PixelRect, anchor_to_pixels

OVERLAY_COLOR = (239, 68, 68)           # 问题框颜色
OVERLAY_FILL = (239, 68, 68, 48)        # 半透明填充
LABEL_TEXT_COLOR = (255, 255, 255)


@dataclass
class OverlayBox:
    """一个定位问题在渲染图上的位置"""

    number: int                   # 从 1 开始的编号，与问题列表一致
    description: str
    rect: PixelRect

    def to_dict(self) -> dict:
        return {"number": self.number, "description": self.description, "rect": self.rect.to_dict()}


@dataclass
class RenderedReport:
    """按指定渲染尺寸排版后的报告"""

    score: Score
    rendered_width: float
    rendered_height: float
    general_issues: List[str] = field(default_factory=list)
    overlays: List[OverlayBox] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "score": self.score,
            "rendered_width": self.rendered_width,
            "rendered_height": self.rendered_height,
            "general_issues": list(self.general_issues),
            "overlays": [box.to_dict() for box in self.overlays],
        }


def render_report(report: Report, rendered_width: float, rendered_height: float) -> RenderedReport:
    """按实际截图当前的渲染尺寸计算所有问题框。"""
    overlays = [
        OverlayBox(
            number=i + 1,
            description=issue.description,
            rect=anchor_to_pixels(issue.anchor, rendered_width, rendered_height),
        )
        for i, issue in enumerate(report.specific_issues)
    ]
    return RenderedReport(
        score=report.score,
        rendered_width=rendered_width,
        rendered_height=rendered_height,
        general_issues=list(report.general_issues),
        overlays=overlays,
    )


def draw_overlays(report: Report, live: ImageAsset) -> bytes:
    """在实际截图原图上绘制问题框，返回 PNG 字节。"""
    with Image.open(io.BytesIO(live.data)) as img:
        base = img.convert("RGBA")

    layer = Image.new("RGBA", base.size, (0, 0, 0, 0))
    draw = ImageDraw.Draw(layer)
    line_width = max(2, round(min(base.size) / 300))

    rendered = render_report(report, base.width, base.height)
    for box in rendered.overlays:
        x0, y0 = box.rect.left, box.rect.top
        x1, y1 = x0 + box.rect.width, y0 + box.rect.height
        draw.rectangle([x0, y0, x1, y1], fill=OVERLAY_FILL, outline=OVERLAY_COLOR, width=line_width)

        # 编号标签贴在框的左上角
        label = str(box.number)
        left, top, right, bottom = draw.textbbox((0, 0), label)
        pad = 3
        label_w, label_h = right - left + pad * 2, bottom - top + pad * 2
        label_y = y0 - label_h if y0 >= label_h else y0
        draw.rectangle([x0, label_y, x0 + label_w, label_y + label_h], fill=OVERLAY_COLOR)
        draw.text((x0 + pad - left, label_y + pad - top), label, fill=LABEL_TEXT_COLOR)

    composed = Image.alpha_composite(base, layer)
    buffer = io.BytesIO()
    composed.save(buffer, format="PNG")
    return buffer.getvalue()


def format_report_markdown(report: Report) -> str:
    """生成 Markdown 格式的走查报告。"""
    lines: List[str] = [
        "## 设计走查报告",
        "",
        f"### 还原度评分: {report.score}",
        "",
        "### 通用问题",
    ]
    if report.general_issues:
        lines.extend(f"- {text}" for text in report.general_issues)
    else:
        lines.append("- 无")

    lines.extend(["", "### 定位问题（坐标为相对实际截图的比例）"])
    if report.specific_issues:
        for i, issue in enumerate(report.specific_issues, start=1):
            a = issue.anchor
            lines.append(
                f"{i}. {issue.description} "
                f"(x={a.x:.3f}, y={a.y:.3f}, w={a.width:.3f}, h={a.height:.3f})"
            )
    else:
        lines.append("- 无")
    return "\n".join(lines)
