"""
FastAPI Web 应用 — 走查会话的 HTTP 接口和 WebSocket 实时推送

路由：
  GET    /api/session                  → 会话快照
  POST   /api/images/{slot}            → 上传图片（文件选择 / 拖拽，multipart）
  POST   /api/images/{slot}/data-url   → 上传图片（data URL）
  GET    /api/images/{slot}            → 图片原始内容
  DELETE /api/images/{slot}            → 移除图片
  POST   /api/analysis                 → 运行 AI 分析
  POST   /api/report/manual            → 手动创建空白报告
  GET    /api/report                   → 当前报告
  DELETE /api/report                   → 放弃报告（保留图片）
  PUT    /api/report/score             → 设置评分
  POST   /api/report/score/adjust      → 增减评分
  POST/PUT/DELETE /api/report/general[/{index}]   → 通用问题增改删
  POST/PUT/DELETE /api/report/specific[/{index}]  → 定位问题增改删
  GET    /api/report/render            → 问题框在指定渲染尺寸下的像素位置
  GET    /api/report/overlay.png       → 带问题框的实际截图
  POST   /api/session/reset            → 重置会话
  DELETE /api/error                    → 关闭错误提示
  WS     /ws                           → 会话事件实时推送
"""
import asyncio
import json
from typing import Optional

from fastapi import FastAPI, File, Query, Request, UploadFile, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, Field

from messages.report_messages import Anchor
from messages.session_messages import ImageSlot
from tools.image_intake import decode_data_url
from utils.errors import (
    AnalysisFailed,
    DesignQAError,
    InvalidEdit,
    InvalidTransition,
    IssueNotFound,
    MissingInput,
    UnsupportedMediaType,
)
from utils.geometry import PixelRect
from utils.report_renderer import draw_overlays, render_report
from web.bridge import SessionBridge


# ============================================================
# 请求体
# ============================================================


class DataUrlUpload(BaseModel):
    data_url: str
    filename: Optional[str] = None


class ScoreBody(BaseModel):
    score: float


class ScoreDelta(BaseModel):
    delta: float


class IssueText(BaseModel):
    text: str


class AnchorBody(BaseModel):
    x: float = Field(ge=0, le=1)
    y: float = Field(ge=0, le=1)
    width: float = Field(ge=0, le=1)
    height: float = Field(ge=0, le=1)

    def to_anchor(self) -> Anchor:
        return Anchor(x=self.x, y=self.y, width=self.width, height=self.height)


class PixelSelection(BaseModel):
    """在渲染尺寸为 rendered_width x rendered_height 的图上框选的矩形"""

    left: float
    top: float
    width: float
    height: float
    rendered_width: float = Field(gt=0)
    rendered_height: float = Field(gt=0)


class SpecificIssueBody(BaseModel):
    description: str
    anchor: Optional[AnchorBody] = None
    pixels: Optional[PixelSelection] = None


class SpecificIssueEdit(BaseModel):
    description: Optional[str] = None
    anchor: Optional[AnchorBody] = None


# ============================================================
# 错误映射
# ============================================================


def _status_for(error: DesignQAError) -> int:
    if isinstance(error, UnsupportedMediaType):
        return 415
    if isinstance(error, (MissingInput, InvalidTransition)):
        return 409
    if isinstance(error, IssueNotFound):
        return 404
    if isinstance(error, InvalidEdit):
        return 422
    if isinstance(error, AnalysisFailed):
        return 503
    return 400


def create_app(bridge: Optional[SessionBridge] = None) -> FastAPI:
    """创建 Web 应用。

    Args:
        bridge: 会话桥接实例，默认创建一个未配置分析网关的桥接（仅支持手动报告）

    Returns:
        FastAPI 实例
    """
    bridge = bridge or SessionBridge()
    app = FastAPI(title="Design QA 设计走查助手")
    app.state.bridge = bridge
    session = bridge.session

    @app.exception_handler(DesignQAError)
    async def handle_design_qa_error(_request: Request, exc: DesignQAError):
        return JSONResponse(
            status_code=_status_for(exc),
            content={"error": type(exc).__name__, "message": str(exc), "phase": session.phase.value},
        )

    # ------------------------------------------------------------------
    # 会话
    # ------------------------------------------------------------------

    @app.get("/api/session")
    async def get_session():
        return session.snapshot()

    @app.post("/api/session/reset")
    async def reset_session():
        session.reset()
        return session.snapshot()

    @app.delete("/api/error")
    async def dismiss_error():
        session.dismiss_error()
        return session.snapshot()

    @app.get("/api/history")
    async def get_history():
        return {"messages": bridge.get_history()}

    # ------------------------------------------------------------------
    # 图片
    # ------------------------------------------------------------------

    @app.post("/api/images/{slot}")
    async def upload_image(slot: ImageSlot, file: UploadFile = File(...)):
        data = await file.read()
        session.upload(slot, data, file.content_type, filename=file.filename)
        return session.snapshot()

    @app.post("/api/images/{slot}/data-url")
    async def upload_image_data_url(slot: ImageSlot, body: DataUrlUpload):
        media_type, data = decode_data_url(body.data_url)
        session.upload(slot, data, media_type, filename=body.filename)
        return session.snapshot()

    @app.get("/api/images/{slot}")
    async def get_image(slot: ImageSlot):
        asset = session.asset(slot)
        if asset is None:
            return JSONResponse(status_code=404, content={"error": "NotFound", "message": f"{slot.value} 图片未上传"})
        return Response(content=asset.data, media_type=asset.media_type)

    @app.delete("/api/images/{slot}")
    async def clear_image(slot: ImageSlot):
        session.clear(slot)
        return session.snapshot()

    # ------------------------------------------------------------------
    # 报告生成
    # ------------------------------------------------------------------

    @app.post("/api/analysis")
    async def run_analysis():
        await session.run_analysis()
        return session.snapshot()

    @app.post("/api/report/manual")
    async def create_manual_report():
        session.create_manually()
        return session.snapshot()

    @app.get("/api/report")
    async def get_report():
        return session.editor().report.to_dict()

    @app.delete("/api/report")
    async def discard_report():
        session.discard_report()
        return session.snapshot()

    # ------------------------------------------------------------------
    # 报告编辑
    # ------------------------------------------------------------------

    @app.put("/api/report/score")
    async def set_score(body: ScoreBody):
        session.editor().set_score(body.score)
        session.mark_edited()
        return session.snapshot()

    @app.post("/api/report/score/adjust")
    async def adjust_score(body: ScoreDelta):
        session.editor().adjust_score(body.delta)
        session.mark_edited()
        return session.snapshot()

    @app.post("/api/report/general")
    async def add_general_issue(body: IssueText):
        session.editor().add_general_issue(body.text)
        session.mark_edited()
        return session.snapshot()

    @app.put("/api/report/general/{index}")
    async def edit_general_issue(index: int, body: IssueText):
        session.editor().edit_general_issue(index, body.text)
        session.mark_edited()
        return session.snapshot()

    @app.delete("/api/report/general/{index}")
    async def remove_general_issue(index: int):
        session.editor().remove_general_issue(index)
        session.mark_edited()
        return session.snapshot()

    @app.post("/api/report/specific")
    async def add_specific_issue(body: SpecificIssueBody):
        editor = session.editor()
        if body.anchor is not None:
            editor.add_specific_issue(body.description, body.anchor.to_anchor())
        elif body.pixels is not None:
            p = body.pixels
            editor.add_specific_issue_from_pixels(
                body.description,
                PixelRect(left=p.left, top=p.top, width=p.width, height=p.height),
                p.rendered_width,
                p.rendered_height,
            )
        else:
            raise InvalidEdit("定位问题必须提供 anchor 或 pixels 区域")
        session.mark_edited()
        return session.snapshot()

    @app.put("/api/report/specific/{index}")
    async def edit_specific_issue(index: int, body: SpecificIssueEdit):
        anchor = body.anchor.to_anchor() if body.anchor is not None else None
        session.editor().edit_specific_issue(index, description=body.description, anchor=anchor)
        session.mark_edited()
        return session.snapshot()

    @app.delete("/api/report/specific/{index}")
    async def remove_specific_issue(index: int):
        session.editor().remove_specific_issue(index)
        session.mark_edited()
        return session.snapshot()

    # ------------------------------------------------------------------
    # 报告渲染
    # ------------------------------------------------------------------

    @app.get("/api/report/render")
    async def render(width: float = Query(gt=0), height: float = Query(gt=0)):
        report = session.editor().report
        return render_report(report, width, height).to_dict()

    @app.get("/api/report/overlay.png")
    async def overlay_png():
        report = session.editor().report
        return Response(content=draw_overlays(report, session.live), media_type="image/png")

    # ------------------------------------------------------------------
    # WebSocket
    # ------------------------------------------------------------------

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket):
        """WebSocket 端点：回放历史 + 实时推送会话事件 + 接收简单命令。"""
        await websocket.accept()
        sub_queue = bridge.subscribe()

        for msg in bridge.messages:
            await websocket.send_json(msg.to_dict())
        await websocket.send_json(bridge.status())

        commands = {
            "reset": session.reset,
            "dismiss_error": session.dismiss_error,
            "discard_report": session.discard_report,
        }

        async def send_task():
            """持续从订阅队列读取新消息并推送到 WebSocket。"""
            while True:
                msg = await sub_queue.get()
                await websocket.send_json(msg.to_dict())

        async def receive_task():
            """持续接收 WebSocket 命令。"""
            try:
                while True:
                    data = await websocket.receive_text()
                    try:
                        parsed = json.loads(data)
                    except json.JSONDecodeError:
                        await websocket.send_json({"msg_type": "error", "message": "命令必须是 JSON"})
                        continue
                    handler = commands.get(parsed.get("type", "") if isinstance(parsed, dict) else "")
                    if handler is None:
                        await websocket.send_json({"msg_type": "error", "message": f"未知命令: {data}"})
                        continue
                    try:
                        handler()
                    except DesignQAError as e:
                        await websocket.send_json({"msg_type": "error", "error": type(e).__name__, "message": str(e)})
            except WebSocketDisconnect:
                pass

        send = asyncio.create_task(send_task())
        receive = asyncio.create_task(receive_task())
        try:
            await asyncio.wait([send, receive], return_when=asyncio.FIRST_COMPLETED)
        finally:
            send.cancel()
            receive.cancel()
            bridge.unsubscribe(sub_queue)

    return app
