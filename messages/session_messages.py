"""
会话控制数据类 — 会话阶段、事件、图片资源，与状态机解耦
"""
import base64
import hashlib
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class SessionPhase(Enum):
    """会话阶段枚举 — 界面可用操作的唯一依据"""

    IDLE = "idle"
    IMAGES_READY = "images_ready"
    ANALYZING = "analyzing"
    REVIEWING = "reviewing"


class SessionEvent(Enum):
    """驱动会话状态转换的用户事件 / 分析结果"""

    UPLOAD = "upload"
    CLEAR = "clear"
    RUN_ANALYSIS = "run_analysis"
    ANALYSIS_SUCCEEDED = "analysis_succeeded"
    ANALYSIS_FAILED = "analysis_failed"
    CREATE_MANUALLY = "create_manually"
    DISCARD_REPORT = "discard_report"
    RESET = "reset"
    DISMISS_ERROR = "dismiss_error"
    REPORT_EDITED = "report_edited"


class ImageSlot(Enum):
    """图片槽位：设计稿 / 实际截图"""

    DESIGN = "design"
    LIVE = "live"


@dataclass(frozen=True)
class ImageAsset:
    """一张已上传并成功解码的图片"""

    slot: ImageSlot
    data: bytes = field(repr=False)
    media_type: str                 # image/png / image/jpeg / image/gif / image/webp
    width: int                      # 原始像素宽度
    height: int                     # 原始像素高度
    filename: Optional[str] = None

    @property
    def digest(self) -> str:
        """图片内容的 sha256，用作内容寻址标识。"""
        return hashlib.sha256(self.data).hexdigest()

    @property
    def preview_url(self) -> str:
        """可直接用于 <img src> 的 data URL 预览。"""
        encoded = base64.b64encode(self.data).decode("ascii")
        return f"data:{self.media_type};base64,{encoded}"

    def describe(self) -> Dict[str, Any]:
        """返回不含图片内容的元数据（可 JSON 序列化）。"""
        return {
            "slot": self.slot.value,
            "media_type": self.media_type,
            "width": self.width,
            "height": self.height,
            "filename": self.filename,
            "size": len(self.data),
            "digest": self.digest,
        }
