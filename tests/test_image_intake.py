"""图片接收：类型白名单、解码校验、多种输入方式汇集到同一校验"""
import base64

import pytest

from messages.session_messages import ImageSlot
from tools.image_intake import decode_data_url, load_image, load_image_file, normalize_media_type
from utils.errors import UnsupportedMediaType

from conftest import make_image_bytes


class TestLoadImage:

    @pytest.mark.parametrize(
        "fmt, media_type",
        [("PNG", "image/png"), ("JPEG", "image/jpeg"), ("GIF", "image/gif"), ("WEBP", "image/webp")],
    )
    def test_accepts_allowlisted_types(self, fmt, media_type):
        asset = load_image(make_image_bytes(fmt, size=(64, 32)), media_type, ImageSlot.DESIGN)
        assert asset.media_type == media_type
        assert (asset.width, asset.height) == (64, 32)
        assert asset.slot is ImageSlot.DESIGN

    def test_rejects_type_outside_allowlist(self, png_bytes):
        with pytest.raises(UnsupportedMediaType) as exc_info:
            load_image(png_bytes, "image/svg+xml", ImageSlot.LIVE)
        assert exc_info.value.media_type == "image/svg+xml"

    def test_rejects_missing_media_type(self, png_bytes):
        with pytest.raises(UnsupportedMediaType):
            load_image(png_bytes, None, ImageSlot.LIVE)

    def test_rejects_undecodable_bytes(self):
        with pytest.raises(UnsupportedMediaType):
            load_image(b"definitely not an image", "image/png", ImageSlot.LIVE)

    def test_rejects_detected_format_outside_allowlist(self):
        bmp = make_image_bytes("BMP")
        with pytest.raises(UnsupportedMediaType):
            load_image(bmp, "image/png", ImageSlot.LIVE)

    def test_stores_detected_media_type(self, jpeg_bytes):
        asset = load_image(jpeg_bytes, "image/png", ImageSlot.LIVE)
        assert asset.media_type == "image/jpeg"

    def test_normalizes_declared_type(self, jpeg_bytes):
        assert normalize_media_type("Image/JPG; charset=binary") == "image/jpeg"
        asset = load_image(jpeg_bytes, "IMAGE/JPG", ImageSlot.DESIGN)
        assert asset.media_type == "image/jpeg"

    def test_preview_url_and_digest(self, png_bytes):
        asset = load_image(png_bytes, "image/png", ImageSlot.DESIGN, filename="mock.png")
        assert asset.preview_url.startswith("data:image/png;base64,")
        assert base64.b64decode(asset.preview_url.split(",", 1)[1]) == png_bytes
        assert len(asset.digest) == 64
        assert asset.describe()["filename"] == "mock.png"


class TestOtherInputPaths:

    def test_load_image_file(self, tmp_path, png_bytes):
        path = tmp_path / "live.png"
        path.write_bytes(png_bytes)
        asset = load_image_file(str(path), ImageSlot.LIVE)
        assert asset.filename == "live.png"
        assert asset.media_type == "image/png"

    def test_load_image_file_with_unknown_extension(self, tmp_path, png_bytes):
        path = tmp_path / "live.bin"
        path.write_bytes(png_bytes)
        with pytest.raises(UnsupportedMediaType):
            load_image_file(str(path), ImageSlot.LIVE)

    def test_decode_data_url(self, png_bytes):
        url = "data:image/png;base64," + base64.b64encode(png_bytes).decode()
        media_type, data = decode_data_url(url)
        assert media_type == "image/png"
        assert data == png_bytes

    @pytest.mark.parametrize(
        "url",
        ["http://example.com/a.png", "data:image/png,rawtext", "data:image/png;base64,@@@"],
    )
    def test_decode_data_url_rejects_invalid(self, url):
        with pytest.raises(UnsupportedMediaType):
            decode_data_url(url)
