"""
设计稿 vs 实际截图 — AI 设计走查入口

支持两种运行模式：

  CLI 模式（默认）：
    python main.py <设计稿图片> <实际截图> [--manual] [--overlay marked.png] [--json]

  Web 模式：
    python main.py --web [--port 8000]
    启动 HTTP / WebSocket 接口，由前端驱动上传、分析和报告编辑
"""
import asyncio
import json
import logging
import os
import sys

# 将项目根目录添加到 Python 路径
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from config import settings

# ============================================================
# 日志配置
# ============================================================
logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logging.getLogger("autogen_core").setLevel(logging.WARNING)

logger = logging.getLogger("design_qa")


def _create_gateway():
    """创建分析网关；未配置 API Key 时返回 None（只能手动创建报告）。"""
    from config.model_client import create_model_client
    from rules.rules_manager import RulesManager
    from workflow.analysis_gateway import AnalysisGateway

    try:
        model_client = create_model_client()
    except ValueError as e:
        logger.warning("分析服务不可用: %s", e)
        return None, None
    rules_manager = RulesManager(settings.QA_RULES_PATH)
    return AnalysisGateway(model_client, rules_manager=rules_manager), model_client


# ============================================================
# CLI 模式
# ============================================================

async def run_cli(args: list[str]) -> int:
    """CLI 模式入口，返回进程退出码。"""
    from messages.session_messages import ImageSlot
    from utils.errors import DesignQAError
    from utils.input_parser import parse_args
    from utils.report_renderer import draw_overlays, format_report_markdown
    from workflow.session import DesignQASession

    try:
        qa_input = parse_args(args)
    except ValueError as e:
        print(f"[错误] {e}")
        return 1

    print()
    print("=" * 60)
    print("  设计走查 (CLI)")
    print("=" * 60)
    print(f"  设计稿   : {qa_input.design_path}")
    print(f"  实际截图 : {qa_input.live_path}")
    print(f"  模式     : {'手动创建' if qa_input.manual else 'AI 分析'}")
    print("=" * 60)

    gateway, model_client = (None, None) if qa_input.manual else _create_gateway()
    session = DesignQASession(gateway=gateway)

    try:
        session.upload_file(ImageSlot.DESIGN, qa_input.design_path)
        session.upload_file(ImageSlot.LIVE, qa_input.live_path)

        if qa_input.manual:
            report = session.create_manually()
        else:
            report = await session.run_analysis()
            if report is None:
                print(f"[错误] {session.error}")
                return 1
    except DesignQAError as e:
        print(f"[错误] {e}")
        return 1
    finally:
        if model_client is not None:
            await model_client.close()

    if qa_input.as_json:
        print(json.dumps(report.to_dict(), ensure_ascii=False, indent=2))
    else:
        print(format_report_markdown(report))

    if qa_input.overlay_path:
        with open(qa_input.overlay_path, "wb") as f:
            f.write(draw_overlays(report, session.live))
        print(f"\n问题标注图已保存: {qa_input.overlay_path}")
    return 0


# ============================================================
# Web 模式
# ============================================================

def run_web(port: int = settings.DEFAULT_WEB_PORT) -> None:
    """Web 模式入口：启动 FastAPI 服务。"""
    from contextlib import asynccontextmanager

    import uvicorn
    from web.app import create_app
    from web.bridge import SessionBridge

    gateway, model_client = _create_gateway()
    app = create_app(SessionBridge(gateway=gateway))

    @asynccontextmanager
    async def lifespan(app):
        yield
        if model_client is not None:
            await model_client.close()
            logger.info("[关闭] 模型客户端已释放")

    app.router.lifespan_context = lifespan

    print()
    print("=" * 60)
    print("  Design QA 设计走查 — Web 模式")
    print(f"  接口地址: http://localhost:{port}/api/session")
    print("=" * 60)
    print()

    uvicorn.run(app, host="0.0.0.0", port=port, log_level="info")


# ============================================================
# 主入口
# ============================================================

def main():
    from utils.input_parser import build_parser

    parser = build_parser()
    args = parser.parse_args()

    if args.web:
        run_web(port=args.port or settings.DEFAULT_WEB_PORT)
        return

    if not args.images:
        parser.print_help()
        sys.exit(1)
    sys.exit(asyncio.run(run_cli(sys.argv[1:])))


if __name__ == "__main__":
    main()
