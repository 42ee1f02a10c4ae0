"""
SessionBridge — 走查会话与 Web UI 之间的异步消息桥接

职责：
  - 持有服务端唯一的 DesignQASession
  - 订阅会话状态变化，推送到所有已连接的 WebSocket 客户端
  - 维护最近的事件历史，供新连接的客户端回放
"""
import asyncio
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Optional

from config import settings
from messages.session_messages import SessionEvent
from workflow.analysis_gateway import AnalysisGateway
from workflow.session import DesignQASession


@dataclass
class SessionMessage:
    """一条会话事件消息"""

    event: str                                     # SessionEvent 的值
    phase: str                                     # 事件发生后的会话阶段
    snapshot: dict                                 # 事件发生后的完整会话快照
    timestamp: float = field(default_factory=time.time)
    msg_type: str = "session"

    def to_dict(self) -> dict:
        return {
            "event": self.event,
            "phase": self.phase,
            "snapshot": self.snapshot,
            "timestamp": self.timestamp,
            "msg_type": self.msg_type,
        }


class SessionBridge:
    """连接走查会话和 Web UI 的消息总线。"""

    def __init__(
        self,
        gateway: Optional[AnalysisGateway] = None,
        history_limit: int = settings.WEB_HISTORY_LIMIT,
    ) -> None:
        self.session = DesignQASession(gateway=gateway)
        # 最近的事件历史（RESET 时清空）
        self.messages: deque[SessionMessage] = deque(maxlen=history_limit)
        # 已连接的 WebSocket 客户端
        self._subscribers: list[asyncio.Queue] = []
        self.session.subscribe(self._on_session_event)

    # ------------------------------------------------------------------
    # 会话 → Web UI
    # ------------------------------------------------------------------

    def _on_session_event(self, event: SessionEvent, session: DesignQASession) -> None:
        """会话状态变化回调（同步），推送到所有订阅者。"""
        msg = SessionMessage(event=event.value, phase=session.phase.value, snapshot=session.snapshot())
        if event is SessionEvent.RESET:
            self.messages.clear()
        self.messages.append(msg)
        for sub_queue in self._subscribers:
            sub_queue.put_nowait(msg)

    def status(self) -> dict:
        """返回当前状态消息（新连接建立时推送）。"""
        return {
            "event": "status",
            "phase": self.session.phase.value,
            "snapshot": self.session.snapshot(),
            "timestamp": time.time(),
            "msg_type": "status",
        }

    # ------------------------------------------------------------------
    # WebSocket 订阅管理
    # ------------------------------------------------------------------

    def subscribe(self) -> asyncio.Queue:
        """注册一个新的消息订阅者，返回其专属消息队列。"""
        q: asyncio.Queue[SessionMessage] = asyncio.Queue()
        self._subscribers.append(q)
        return q

    def unsubscribe(self, q: asyncio.Queue) -> None:
        """注销订阅者。"""
        if q in self._subscribers:
            self._subscribers.remove(q)

    # ------------------------------------------------------------------
    # 工具方法
    # ------------------------------------------------------------------

    def get_history(self) -> list[dict]:
        """返回事件历史（字典列表，可 JSON 序列化）。"""
        return [m.to_dict() for m in self.messages]
