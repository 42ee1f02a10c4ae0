"""
图片接收工具函数

文件选择、拖拽上传、data URL 和本地文件路径等所有输入方式，
最终都汇集到 load_image() 做同一套校验：
  1. 声明的媒体类型必须在允许列表内（PNG / JPEG / GIF / WebP）
  2. 内容必须能被 Pillow 解码，且识别出的格式同样在允许列表内
"""
import base64
import binascii
import io
import mimetypes
import os
from typing import Optional, Tuple

from PIL import Image, UnidentifiedImageError

from config import settings
from messages.session_messages import ImageAsset, ImageSlot
from utils.errors import UnsupportedMediaType

# 常见的非标准写法
_MEDIA_TYPE_ALIASES = {
    "image/jpg": "image/jpeg",
    "image/pjpeg": "image/jpeg",
    "image/x-png": "image/png",
}

_FORMAT_TO_MEDIA_TYPE = {fmt: media for media, fmt in settings.ALLOWED_MEDIA_TYPES.items()}


def normalize_media_type(media_type: Optional[str]) -> Optional[str]:
    """去掉参数、统一大小写并处理别名，如 'Image/JPG; q=1' → 'image/jpeg'。"""
    if not media_type:
        return None
    base = media_type.split(";", 1)[0].strip().lower()
    return _MEDIA_TYPE_ALIASES.get(base, base)


def load_image(
    data: bytes,
    media_type: Optional[str],
    slot: ImageSlot,
    filename: Optional[str] = None,
) -> ImageAsset:
    """校验并解码一张上传的图片。

    Args:
        data: 图片原始字节
        media_type: 上传方声明的媒体类型
        slot: 目标槽位（设计稿 / 实际截图）
        filename: 原始文件名（可选，仅用于展示）

    Raises:
        UnsupportedMediaType: 类型不在允许列表内或内容无法解码

    Returns:
        ImageAsset 实例（media_type 为实际识别出的类型）
    """
    declared = normalize_media_type(media_type)
    if declared not in settings.ALLOWED_MEDIA_TYPES:
        raise UnsupportedMediaType(media_type)

    try:
        with Image.open(io.BytesIO(data)) as img:
            img.load()
            detected_format = img.format
            width, height = img.size
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, SyntaxError, ValueError) as e:
        raise UnsupportedMediaType(
            media_type, f"图片无法解码（声明类型 {declared}）: {type(e).__name__}"
        ) from e

    detected = _FORMAT_TO_MEDIA_TYPE.get(detected_format or "")
    if detected is None:
        raise UnsupportedMediaType(detected_format, f"图片实际格式 {detected_format} 不受支持")

    return ImageAsset(
        slot=slot,
        data=data,
        media_type=detected,
        width=width,
        height=height,
        filename=filename,
    )


def load_image_file(path: str, slot: ImageSlot) -> ImageAsset:
    """从本地文件读取图片（CLI 使用），媒体类型由文件扩展名推断。"""
    media_type, _encoding = mimetypes.guess_type(path)
    with open(path, "rb") as f:
        data = f.read()
    return load_image(data, media_type, slot, filename=os.path.basename(path))


def decode_data_url(data_url: str) -> Tuple[Optional[str], bytes]:
    """解析 'data:image/png;base64,....' 形式的 data URL。

    Returns:
        (声明的媒体类型, 图片字节)

    Raises:
        UnsupportedMediaType: 不是 base64 编码的 data URL 或编码损坏
    """
    if not data_url.startswith("data:") or "," not in data_url:
        raise UnsupportedMediaType(None, "不是有效的 data URL")

    header, payload = data_url[len("data:"):].split(",", 1)
    parts = header.split(";")
    if "base64" not in parts[1:]:
        raise UnsupportedMediaType(parts[0] or None, "data URL 必须使用 base64 编码")

    try:
        data = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise UnsupportedMediaType(parts[0] or None, "data URL 的 base64 内容已损坏") from e
    return parts[0] or None, data
