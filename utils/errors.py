"""
设计走查错误类型

所有错误都可在本地恢复：会话始终回到一个合法的阶段，不存在致命错误。
"""
from typing import Optional


class DesignQAError(Exception):
    """所有设计走查错误的基类。"""


class MissingInput(DesignQAError):
    """设计稿或实际截图尚未上传，无法运行分析 / 手动创建报告。"""

    def __init__(self, message: str = "请先上传设计稿和实际截图两张图片。") -> None:
        super().__init__(message)


class UnsupportedMediaType(DesignQAError):
    """上传的文件类型不在允许列表内，或无法解码为图片。"""

    def __init__(self, media_type: Optional[str], message: Optional[str] = None) -> None:
        self.media_type = media_type
        super().__init__(message or f"不支持的图片类型: {media_type or '未知'}（仅支持 PNG、JPG、GIF、WebP）")


class InvalidTransition(DesignQAError):
    """当前会话阶段不允许该操作。"""

    def __init__(self, phase, event, message: Optional[str] = None) -> None:
        self.phase = phase
        self.event = event
        super().__init__(message or f"阶段 {phase.value} 不允许操作 {event.value}")


class SessionBusy(InvalidTransition):
    """分析进行中，拒绝修改输入或再次发起分析。"""

    def __init__(self, phase, event) -> None:
        super().__init__(phase, event, f"分析进行中，暂不允许操作 {event.value}")


# ============================================================
# 分析失败
# ============================================================

# 失败原因 → 面向用户的提示（原始错误信息只写日志，不直接展示）
_USER_MESSAGES = {
    "transport": "无法连接分析服务，请检查网络后重试。",
    "service": "分析服务返回错误，请稍后重试。",
    "malformed": "分析服务返回的报告格式无效，请重试。",
    "unavailable": "未配置分析服务，请使用手动创建报告。",
    "unexpected": "分析过程中发生未知错误，请重试。",
}


class AnalysisFailed(DesignQAError):
    """调用分析服务失败（网络、服务端或响应格式错误）。"""

    def __init__(self, reason: str, detail: str = "") -> None:
        self.reason = reason
        self.detail = detail
        super().__init__(f"分析失败 [{reason}]: {detail}" if detail else f"分析失败 [{reason}]")

    @property
    def user_message(self) -> str:
        return _USER_MESSAGES.get(self.reason, _USER_MESSAGES["unexpected"])


class MalformedResponse(AnalysisFailed):
    """分析服务的响应不符合报告结构，整体拒绝，不接受部分结果。"""

    def __init__(self, detail: str = "") -> None:
        super().__init__("malformed", detail)


# ============================================================
# 报告编辑
# ============================================================


class IssueNotFound(DesignQAError, IndexError):
    """按下标编辑 / 删除问题时下标越界。"""


class InvalidEdit(DesignQAError, ValueError):
    """编辑内容不合法（如空白描述）。"""
