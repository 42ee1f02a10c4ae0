"""
设计走查会话状态机

会话阶段（SessionPhase）是界面可用操作的唯一依据：

  IDLE ──upload──▶ IMAGES_READY ──run_analysis──▶ ANALYZING ──成功──▶ REVIEWING
                      │   ▲                          │                 │
                      │   └──────────失败────────────┘                 │
                      └──────────create_manually──────────────────────▶│
  任意阶段 ──reset──▶ IDLE；REVIEWING ──discard_report──▶ IMAGES_READY

所有转换都经过 _transition()：先解析目标阶段（守卫失败直接抛错、不改状态），
再执行副作用，最后提交阶段并通知订阅者。

分析期间只接受 reset；reset 会取消进行中的请求，并通过“分析批次号”
丢弃迟到的结果（只有仍处于发起它的那一次 ANALYZING 时才会采用）。
"""
import asyncio
import logging
from typing import Any, Callable, Dict, List, Optional

from autogen_core import CancellationToken

from messages.report_messages import Report
from messages.session_messages import ImageAsset, ImageSlot, SessionEvent, SessionPhase
from tools.image_intake import load_image, load_image_file
from utils.errors import AnalysisFailed, InvalidTransition, MissingInput, SessionBusy
from workflow.analysis_gateway import AnalysisGateway
from workflow.report_editor import ReportEditor

logger = logging.getLogger(__name__)

Listener = Callable[[SessionEvent, "DesignQASession"], None]

# 固定转换表：(当前阶段, 事件) → 目标阶段
# UPLOAD / CLEAR / RESET / DISMISS_ERROR 的目标阶段由 _resolve() 单独计算
_PHASE_TABLE: Dict[tuple, SessionPhase] = {
    (SessionPhase.IMAGES_READY, SessionEvent.RUN_ANALYSIS): SessionPhase.ANALYZING,
    (SessionPhase.REVIEWING, SessionEvent.RUN_ANALYSIS): SessionPhase.ANALYZING,
    (SessionPhase.ANALYZING, SessionEvent.ANALYSIS_SUCCEEDED): SessionPhase.REVIEWING,
    (SessionPhase.ANALYZING, SessionEvent.ANALYSIS_FAILED): SessionPhase.IMAGES_READY,
    (SessionPhase.IMAGES_READY, SessionEvent.CREATE_MANUALLY): SessionPhase.REVIEWING,
    (SessionPhase.REVIEWING, SessionEvent.DISCARD_REPORT): SessionPhase.IMAGES_READY,
    (SessionPhase.REVIEWING, SessionEvent.REPORT_EDITED): SessionPhase.REVIEWING,
}

# 需要两张图片齐全才能触发的事件
_NEEDS_BOTH_INPUTS = (SessionEvent.RUN_ANALYSIS, SessionEvent.CREATE_MANUALLY)

# 分析进行中仍然允许的事件
_ALLOWED_WHILE_ANALYZING = (
    SessionEvent.RESET,
    SessionEvent.ANALYSIS_SUCCEEDED,
    SessionEvent.ANALYSIS_FAILED,
)


class DesignQASession:
    """单个用户的设计走查会话。"""

    def __init__(self, gateway: Optional[AnalysisGateway] = None) -> None:
        self._gateway = gateway
        self.phase: SessionPhase = SessionPhase.IDLE
        self.report: Optional[Report] = None
        # 面向用户、可关闭的错误提示
        self.error: Optional[str] = None
        self._assets: Dict[ImageSlot, ImageAsset] = {}
        # 分析批次号，用于丢弃过期的分析结果
        self._episode: int = 0
        self._cancellation: Optional[CancellationToken] = None
        self._listeners: List[Listener] = []

    # ------------------------------------------------------------------
    # 只读属性
    # ------------------------------------------------------------------

    @property
    def design(self) -> Optional[ImageAsset]:
        return self._assets.get(ImageSlot.DESIGN)

    @property
    def live(self) -> Optional[ImageAsset]:
        return self._assets.get(ImageSlot.LIVE)

    def asset(self, slot: ImageSlot) -> Optional[ImageAsset]:
        return self._assets.get(slot)

    @property
    def inputs_complete(self) -> bool:
        """设计稿与实际截图是否都已上传。"""
        return ImageSlot.DESIGN in self._assets and ImageSlot.LIVE in self._assets

    @property
    def has_gateway(self) -> bool:
        return self._gateway is not None

    # ------------------------------------------------------------------
    # 转换核心
    # ------------------------------------------------------------------

    def _resolve(self, event: SessionEvent, slot: Optional[ImageSlot] = None) -> SessionPhase:
        """计算事件的目标阶段；不允许时抛错，不产生任何副作用。"""
        phase = self.phase

        if event is SessionEvent.RESET:
            return SessionPhase.IDLE

        if phase is SessionPhase.ANALYZING and event not in _ALLOWED_WHILE_ANALYZING:
            raise SessionBusy(phase, event)

        if event is SessionEvent.DISMISS_ERROR:
            return phase

        if event in (SessionEvent.UPLOAD, SessionEvent.CLEAR):
            if phase not in (SessionPhase.IDLE, SessionPhase.IMAGES_READY):
                raise InvalidTransition(phase, event, "报告审阅中不能修改图片，请先放弃报告或重置会话")
            filled = set(self._assets)
            if event is SessionEvent.UPLOAD:
                filled.add(slot)
            else:
                filled.discard(slot)
            return SessionPhase.IMAGES_READY if filled else SessionPhase.IDLE

        if event in _NEEDS_BOTH_INPUTS and not self.inputs_complete:
            raise MissingInput()

        target = _PHASE_TABLE.get((phase, event))
        if target is None:
            raise InvalidTransition(phase, event)
        return target

    def _transition(
        self,
        event: SessionEvent,
        slot: Optional[ImageSlot] = None,
        effect: Optional[Callable[[], None]] = None,
    ) -> None:
        """解析 → 执行副作用 → 提交阶段 → 通知订阅者。"""
        target = self._resolve(event, slot)
        if effect is not None:
            effect()
        previous = self.phase
        self.phase = target
        if previous is not target:
            logger.debug("[会话] %s --%s--> %s", previous.value, event.value, target.value)
        self._notify(event)

    # ------------------------------------------------------------------
    # 图片上传 / 移除
    # ------------------------------------------------------------------

    def upload(
        self,
        slot: ImageSlot,
        data: bytes,
        media_type: Optional[str],
        filename: Optional[str] = None,
    ) -> ImageAsset:
        """上传（或替换）某个槽位的图片。

        Raises:
            UnsupportedMediaType: 图片类型不支持，原有状态不变
            SessionBusy: 分析进行中
            InvalidTransition: 报告审阅中
        """
        holder: List[ImageAsset] = []

        def store() -> None:
            asset = load_image(data, media_type, slot, filename=filename)
            self._assets[slot] = asset
            holder.append(asset)

        self._transition(SessionEvent.UPLOAD, slot=slot, effect=store)
        logger.info("[会话] 已上传 %s 图片 (%s, %dx%d)", slot.value, holder[0].media_type, holder[0].width, holder[0].height)
        return holder[0]

    def upload_file(self, slot: ImageSlot, path: str) -> ImageAsset:
        """从本地文件上传图片（CLI 使用）。"""
        holder: List[ImageAsset] = []

        def store() -> None:
            asset = load_image_file(path, slot)
            self._assets[slot] = asset
            holder.append(asset)

        self._transition(SessionEvent.UPLOAD, slot=slot, effect=store)
        return holder[0]

    def clear(self, slot: ImageSlot) -> None:
        """移除某个槽位的图片；槽位为空时不做任何事。"""
        self._transition(SessionEvent.CLEAR, slot=slot, effect=lambda: self._assets.pop(slot, None))

    # ------------------------------------------------------------------
    # 生成报告
    # ------------------------------------------------------------------

    async def run_analysis(self) -> Optional[Report]:
        """调用分析网关生成报告。

        成功时进入 REVIEWING 并返回报告；失败时回到 IMAGES_READY，
        记录面向用户的错误提示并返回 None；结果过期时直接丢弃并返回 None。

        Raises:
            MissingInput: 两张图片未齐全
            SessionBusy: 已有分析在进行中
            AnalysisFailed: 未配置分析网关（reason=unavailable），状态不变
        """
        self._resolve(SessionEvent.RUN_ANALYSIS)
        if self._gateway is None:
            raise AnalysisFailed("unavailable", "未配置分析网关")

        def start() -> None:
            self.report = None
            self.error = None

        self._transition(SessionEvent.RUN_ANALYSIS, effect=start)

        self._episode += 1
        episode = self._episode
        token = CancellationToken()
        self._cancellation = token
        design, live = self.design, self.live

        try:
            report = await self._gateway.analyze(design, live, cancellation_token=token)
        except asyncio.CancelledError:
            if self._is_stale(episode):
                logger.info("[会话] 第 %d 次分析已被取消", episode)
                return None
            raise
        except AnalysisFailed as e:
            return self._fail(episode, e)
        except Exception as e:
            logger.exception("[会话] 分析网关出现未预期的异常")
            return self._fail(episode, AnalysisFailed("unexpected", f"{type(e).__name__}: {e}"))
        finally:
            if self._cancellation is token:
                self._cancellation = None

        if self._is_stale(episode):
            logger.info("[会话] 丢弃过期的分析结果（第 %d 次）", episode)
            return None

        def store() -> None:
            self.report = report

        self._transition(SessionEvent.ANALYSIS_SUCCEEDED, effect=store)
        return report

    def _is_stale(self, episode: int) -> bool:
        return self.phase is not SessionPhase.ANALYZING or self._episode != episode

    def _fail(self, episode: int, failure: AnalysisFailed) -> None:
        if self._is_stale(episode):
            logger.info("[会话] 丢弃过期的分析失败（第 %d 次）: %s", episode, failure)
            return None
        logger.warning("[会话] 分析失败 [%s]: %s", failure.reason, failure.detail)

        def record() -> None:
            self.error = failure.user_message

        self._transition(SessionEvent.ANALYSIS_FAILED, effect=record)
        return None

    def create_manually(self) -> Report:
        """不调用分析服务，直接创建满分、无问题的空白报告。"""

        def store() -> None:
            self.report = Report.manual()
            self.error = None

        self._transition(SessionEvent.CREATE_MANUALLY, effect=store)
        return self.report

    # ------------------------------------------------------------------
    # 报告审阅
    # ------------------------------------------------------------------

    def editor(self) -> ReportEditor:
        """返回绑定当前报告的编辑器（仅 REVIEWING 阶段可用）。"""
        if self.phase is not SessionPhase.REVIEWING or self.report is None:
            raise InvalidTransition(self.phase, SessionEvent.REPORT_EDITED, "当前没有可编辑的报告")
        return ReportEditor(self.report)

    def mark_edited(self) -> None:
        """编辑器修改报告后调用，通知订阅者。"""
        self._transition(SessionEvent.REPORT_EDITED)

    def discard_report(self) -> None:
        """放弃当前报告，保留两张图片，回到 IMAGES_READY。"""
        self._transition(SessionEvent.DISCARD_REPORT, effect=lambda: setattr(self, "report", None))

    def dismiss_error(self) -> None:
        self._transition(SessionEvent.DISMISS_ERROR, effect=lambda: setattr(self, "error", None))

    def reset(self) -> None:
        """重置会话：丢弃报告和两张图片；如有进行中的分析则取消。"""

        def clear_all() -> None:
            if self._cancellation is not None:
                self._cancellation.cancel()
                self._cancellation = None
            # 让进行中的分析结果失效
            self._episode += 1
            self._assets.clear()
            self.report = None
            self.error = None

        self._transition(SessionEvent.RESET, effect=clear_all)
        logger.info("[会话] 已重置")

    # ------------------------------------------------------------------
    # 订阅
    # ------------------------------------------------------------------

    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def unsubscribe(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self, event: SessionEvent) -> None:
        for listener in list(self._listeners):
            listener(event, self)

    # ------------------------------------------------------------------
    # 快照
    # ------------------------------------------------------------------

    def snapshot(self) -> Dict[str, Any]:
        """返回当前会话状态（可 JSON 序列化）。"""
        return {
            "phase": self.phase.value,
            "inputs_complete": self.inputs_complete,
            "images": {
                slot.value: (self._assets[slot].describe() if slot in self._assets else None)
                for slot in ImageSlot
            },
            "report": self.report.to_dict() if self.report is not None else None,
            "error": self.error,
            "can_analyze": self.has_gateway,
        }
