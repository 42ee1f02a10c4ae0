"""
归一化坐标 ↔ 像素坐标转换

渲染问题框与手动框选问题区域共用这一组纯函数，保证两者使用同一套换算。
"""
from dataclasses import dataclass

from messages.report_messages import Anchor


@dataclass(frozen=True)
class PixelRect:
    """以渲染尺寸为基准的像素矩形（左上角 + 宽高）"""

    left: float
    top: float
    width: float
    height: float

    def to_dict(self) -> dict:
        return {"left": self.left, "top": self.top, "width": self.width, "height": self.height}


def _check_size(rendered_width: float, rendered_height: float) -> None:
    if rendered_width <= 0 or rendered_height <= 0:
        raise ValueError(f"渲染尺寸必须为正数，实际为 {rendered_width}x{rendered_height}")


def _clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


def anchor_to_pixels(anchor: Anchor, rendered_width: float, rendered_height: float) -> PixelRect:
    """将归一化锚点换算为当前渲染尺寸下的像素矩形。"""
    _check_size(rendered_width, rendered_height)
    return PixelRect(
        left=anchor.x * rendered_width,
        top=anchor.y * rendered_height,
        width=anchor.width * rendered_width,
        height=anchor.height * rendered_height,
    )


def pixels_to_anchor(rect: PixelRect, rendered_width: float, rendered_height: float) -> Anchor:
    """将框选得到的像素矩形换算为归一化锚点。

    反向拖拽产生的负宽高会先规整为正；超出图片的部分被裁剪掉。
    """
    _check_size(rendered_width, rendered_height)

    left, width = rect.left, rect.width
    if width < 0:
        left, width = left + width, -width
    top, height = rect.top, rect.height
    if height < 0:
        top, height = top + height, -height

    x0 = _clamp(left / rendered_width)
    y0 = _clamp(top / rendered_height)
    x1 = _clamp((left + width) / rendered_width)
    y1 = _clamp((top + height) / rendered_height)

    return Anchor(x=x0, y=y0, width=x1 - x0, height=y1 - y0)
