"""
全局配置 — 模型参数、图片限制、评分范围、文件路径等
"""
import os

from dotenv import load_dotenv

# ============================================================
# 项目根目录
# ============================================================
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))

# 加载 .env 文件（位于项目根目录）
load_dotenv(os.path.join(PROJECT_ROOT, ".env"))

# ============================================================
# 模型配置（OpenAI 兼容接口，必须是支持图片输入的视觉模型）
# ============================================================
MODEL_NAME = os.getenv("MODEL_NAME", "Qwen/Qwen2.5-VL-72B-Instruct")
MODEL_BASE_URL = os.getenv("MODEL_BASE_URL", "https://api-inference.modelscope.cn/v1")
MODEL_API_KEY = os.getenv("MODEL_API_KEY", "")
MODEL_FAMILY = os.getenv("MODEL_FAMILY", "unknown")
MODEL_TEMPERATURE = float(os.getenv("MODEL_TEMPERATURE", "0.2"))

# 单次分析请求的超时时间（秒）；不做自动重试，用户重新点击“运行分析”即为重试
ANALYSIS_TIMEOUT_SECONDS = float(os.getenv("ANALYSIS_TIMEOUT_SECONDS", "120"))

# ============================================================
# 图片配置
# ============================================================
# 声明的媒体类型 → Pillow 识别出的格式
ALLOWED_MEDIA_TYPES: dict[str, str] = {
    "image/png": "PNG",
    "image/jpeg": "JPEG",
    "image/gif": "GIF",
    "image/webp": "WEBP",
}

# 发送给分析服务前，图片最长边超过该值时等比缩小
MAX_IMAGE_DIMENSION = int(os.getenv("MAX_IMAGE_DIMENSION", "2048"))

# ============================================================
# 报告配置
# ============================================================
SCORE_MIN = 0
SCORE_MAX = 100
MANUAL_DEFAULT_SCORE = 100          # 手动创建报告时的默认满分

# ============================================================
# 文件路径
# ============================================================
QA_RULES_PATH = os.path.join(PROJECT_ROOT, "rules", "qa_rules.json")

# ============================================================
# 运行配置
# ============================================================
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
DEFAULT_WEB_PORT = 8000
# WebSocket 回放的会话事件历史上限（超出后丢弃最早的事件）
WEB_HISTORY_LIMIT = int(os.getenv("WEB_HISTORY_LIMIT", "200"))
