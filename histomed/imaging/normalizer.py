# histomed/imaging/normalizer.py
from __future__ import annotations

import base64
import io
import logging
import mimetypes
import re
from pathlib import PurePath
from typing import Optional, Tuple

from PIL import Image, UnidentifiedImageError

from histomed import messages
from histomed.errors import ProcessingError, ValidationError

logger = logging.getLogger(__name__)

MAX_DIMENSION = 1024
JPEG_QUALITY = 60  # equivale ao 0.6 do canvas.toDataURL

ACCEPTED_MIME_TYPES = ("image/png", "image/jpeg", "image/jpg", "image/webp", "image/gif")

_DATA_URL_RE = re.compile(r"^data:(?P<mime>[\w/+.-]+);base64,(?P<data>.*)$", re.DOTALL)


def target_size(width: int, height: int, bound: int = MAX_DIMENSION) -> Tuple[int, int]:
    """
    Mantém a proporção e limita o lado maior a `bound`. Não amplia imagens pequenas.
    """
    if width <= 0 or height <= 0:
        raise ProcessingError(f"Dimensões inválidas: {width}x{height}")

    w, h = float(width), float(height)
    if w > h:
        if w > bound:
            h *= bound / w
            w = bound
    else:
        if h > bound:
            w *= bound / h
            h = bound
    # o canvas trunca dimensões fracionárias
    return max(1, int(w)), max(1, int(h))


def normalize_image(data: bytes, bound: int = MAX_DIMENSION, quality: int = JPEG_QUALITY) -> str:
    """
    Decodifica, reduz e recomprime como JPEG. Retorna um data URL
    ('data:image/jpeg;base64,...') de tamanho limitado, pronto para o armazenamento.
    """
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.load()
            size = target_size(img.width, img.height, bound)
            surface = _flatten(img)
            if surface.size != size:
                surface = surface.resize(size, Image.Resampling.LANCZOS)
            buf = io.BytesIO()
            surface.save(buf, format="JPEG", quality=quality)
    except ProcessingError:
        raise
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
        logger.error("[IMAGE] Falha ao processar imagem: %s", e)
        raise ProcessingError(messages.IMAGE_PROCESSING_FAILED) from e

    encoded = base64.b64encode(buf.getvalue()).decode("ascii")
    return f"data:image/jpeg;base64,{encoded}"


def _flatten(img: Image.Image) -> Image.Image:
    # JPEG não tem canal alfa: compõe sobre fundo branco
    if img.mode in ("RGBA", "LA") or (img.mode == "P" and "transparency" in img.info):
        rgba = img.convert("RGBA")
        background = Image.new("RGB", rgba.size, (255, 255, 255))
        background.paste(rgba, mask=rgba.getchannel("A"))
        return background
    if img.mode != "RGB":
        return img.convert("RGB")
    return img.copy()


def validate_upload(filename: str, mime_type: Optional[str] = None) -> str:
    """
    Aceita só imagens. Retorna o MIME identificado; lança ValidationError caso contrário.
    """
    mime = (mime_type or mimetypes.guess_type(filename)[0] or "").lower()
    if not mime.startswith("image/") or mime not in ACCEPTED_MIME_TYPES:
        raise ValidationError(messages.INVALID_IMAGE_FILE)
    return mime


def title_from_filename(filename: str) -> str:
    return PurePath(filename).stem


def to_data_url(data: bytes, mime_type: str) -> str:
    return f"data:{mime_type};base64,{base64.b64encode(data).decode('ascii')}"


def split_data_url(url: str) -> Tuple[str, bytes]:
    m = _DATA_URL_RE.match(url.strip())
    if not m:
        raise ValueError("Data URL inválido.")
    return m.group("mime"), base64.b64decode(m.group("data"))
