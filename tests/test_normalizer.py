import io

import pytest
from PIL import Image

from conftest import image_bytes
from histomed import messages
from histomed.errors import ProcessingError, ValidationError
from histomed.imaging.normalizer import (
    normalize_image,
    split_data_url,
    target_size,
    title_from_filename,
    validate_upload,
)


def _decode(url):
    mime, data = split_data_url(url)
    return mime, Image.open(io.BytesIO(data))


def test_wide_image_is_bounded_to_1024():
    mime, img = _decode(normalize_image(image_bytes(size=(2048, 1000))))
    assert mime == "image/jpeg"
    assert img.format == "JPEG"
    assert img.size == (1024, 500)


def test_tall_image_is_bounded_by_height():
    assert target_size(900, 3000) == (307, 1024)


def test_small_image_is_not_upscaled():
    _, img = _decode(normalize_image(image_bytes(size=(320, 200))))
    assert img.size == (320, 200)


def test_fractional_dimensions_are_truncated():
    assert target_size(3000, 2001) == (1024, 683)


def test_transparent_png_is_flattened():
    _, img = _decode(normalize_image(image_bytes(size=(10, 10), mode="RGBA")))
    assert img.mode == "RGB"


def test_non_image_bytes_raise_processing_error():
    with pytest.raises(ProcessingError) as exc:
        normalize_image(b"isto nao e uma imagem")
    assert str(exc.value) == messages.IMAGE_PROCESSING_FAILED


def test_oversized_image_raises_processing_error():
    # 196M pixels: acima do limite de descompressão do Pillow
    img = Image.new("1", (14000, 14000))
    buf = io.BytesIO()
    img.save(buf, format="PNG")

    with pytest.raises(ProcessingError) as exc:
        normalize_image(buf.getvalue())
    assert str(exc.value) == messages.IMAGE_PROCESSING_FAILED


def test_invalid_dimensions():
    with pytest.raises(ProcessingError):
        target_size(0, 100)


@pytest.mark.parametrize("name,mime", [("mapa.png", None), ("foto.JPG", None), ("x.bin", "image/jpeg")])
def test_accepted_uploads(name, mime):
    assert validate_upload(name, mime).startswith("image/")


@pytest.mark.parametrize("name,mime", [("notas.pdf", None), ("video.mp4", None), ("sem_extensao", None),
                                       ("x.png", "text/plain")])
def test_rejected_uploads(name, mime):
    with pytest.raises(ValidationError) as exc:
        validate_upload(name, mime)
    assert str(exc.value) == messages.INVALID_IMAGE_FILE


def test_title_from_filename():
    assert title_from_filename("/tmp/Tecido Ósseo.png") == "Tecido Ósseo"


def test_split_data_url_rejects_garbage():
    with pytest.raises(ValueError):
        split_data_url("http://exemplo.com/a.png")
