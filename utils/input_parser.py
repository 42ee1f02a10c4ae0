"""
CLI 输入参数解析器

用法:
  python main.py <设计稿图片> <实际截图>
  python main.py <设计稿图片> <实际截图> --manual
  python main.py <设计稿图片> <实际截图> --overlay marked.png --json
"""
import argparse
import os
import sys
from dataclasses import dataclass
from typing import Optional


@dataclass
class QAInput:
    """解析后的走查输入参数"""

    design_path: str
    live_path: str
    manual: bool = False               # 手动创建空白报告，不调用分析服务
    overlay_path: Optional[str] = None  # 输出带问题框的实际截图
    as_json: bool = False              # 以 JSON 而非 Markdown 输出报告


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="设计稿 vs 实际截图 — AI 设计走查",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "示例:\n"
            "  CLI: python main.py design.png live.png\n"
            "  CLI: python main.py design.png live.png --manual\n"
            "  Web: python main.py --web --port 9000\n"
        ),
    )
    parser.add_argument("--web", action="store_true", help="启动 Web 接口模式")
    parser.add_argument("--port", type=int, default=None, help="Web 模式端口号 (默认 8000)")
    parser.add_argument("--manual", action="store_true", help="不调用分析服务，创建空白报告")
    parser.add_argument("--overlay", metavar="PATH", help="将带问题框的实际截图保存到该路径")
    parser.add_argument("--json", action="store_true", help="以 JSON 格式输出报告")
    parser.add_argument("images", nargs="*", help="设计稿图片路径和实际截图路径")
    return parser


def parse_args(args: list[str] | None = None) -> QAInput:
    """解析 CLI 模式的位置参数与选项，返回 QAInput 实例。

    Args:
        args: 参数列表，默认使用 sys.argv[1:]

    Raises:
        ValueError: 图片数量不是 2 个或文件不存在时抛出

    Returns:
        QAInput 实例
    """
    if args is None:
        args = sys.argv[1:]

    namespace = build_parser().parse_args(args)
    images = namespace.images

    if len(images) != 2:
        raise ValueError(
            f"需要且只需要 2 个图片路径（设计稿、实际截图），实际收到 {len(images)} 个"
        )

    for path in images:
        if not os.path.isfile(path):
            raise ValueError(f"图片文件不存在: {path}")

    return QAInput(
        design_path=images[0],
        live_path=images[1],
        manual=namespace.manual,
        overlay_path=namespace.overlay,
        as_json=namespace.json,
    )
