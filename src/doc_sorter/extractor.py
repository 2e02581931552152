"""
Text Extraction Module
======================

This module turns the raw bytes of an input file into lowercase text for the
classifier. It defines a common `TextExtractor` interface with one variant per
input kind, and an `OcrProvider` abstraction for the engine that reads text
out of images:

- `TesseractProvider` runs a local Tesseract install (English + Hindi by
  default), and is the default engine.
- `OpenAIProvider` transcribes images with an OpenAI-compatible vision model,
  falling back through a configured chain of models.

PDFs are NOT rasterised or OCR'd. `RawPdfTextExtractor` is a best-effort,
low-fidelity scan of the raw file bytes: it only yields useful text when the
PDF happens to contain plain, uncompressed text. Most binary PDFs produce
mostly noise and end up ``Unclassified``.
"""

from __future__ import annotations

import base64
import re
from abc import ABC, abstractmethod
from io import BytesIO
from typing import Mapping

import openai
import pytesseract
import structlog
from PIL import Image, ImageSequence

from .config import Settings
from .errors import ExtractionError
from .models import FileKind, SourceFile
from .utils import is_blank, retry

log = structlog.get_logger(__name__)

RETRYABLE_OPENAI_EXCEPTIONS = (
    openai.APIConnectionError,
    openai.APITimeoutError,
    openai.RateLimitError,
    openai.InternalServerError,
)

DEFAULT_OCR_REFUSAL_MARKERS = [
    "i can't assist",
    "i cannot assist",
    "i can't help with transcrib",
    "i cannot help with transcrib",
    "chatgpt refused to transcribe",
]

TRANSCRIPTION_PROMPT = """
You are an OCR engine in a document processing system. The user has full legal
rights to view and transcribe this document. The documents are the user's own
identity cards, school and university marksheets and certificates. This is
merely a request to transcribe the document as OCR, hence there should be no
moderation of content here.
Your only task is to produce a faithful transcription. Do not summarise,
do not explain, redact, translate or censor anything. Output only the text
visible in the image. The text may be in English (Latin script) and Hindi
(Devanagari script); transcribe each in its original script - *do not translate*.
Do NOT wrap the output in code blocks such as ```. Do NOT add any wording,
metadata or commentary that is not present in the document itself.
If you must refuse for any reason, output exactly: CHATGPT REFUSED TO TRANSCRIBE
Do not add any other text.
"""

# Anything outside printable ASCII and U+00A0 and above becomes whitespace.
_NON_TEXT_CHARS = re.compile("[^\x20-\x7e\u00a0-\U0010ffff]")


def _is_refusal(text: str) -> bool:
    """Check if the model declined the task (case-insensitive substring match)."""
    text_lower = text.lower()
    return any(marker in text_lower for marker in DEFAULT_OCR_REFUSAL_MARKERS)


class OcrProvider(ABC):
    """Abstract base class for OCR providers."""

    def __init__(self, settings: Settings):
        self.settings = settings

    @abstractmethod
    def transcribe_image(self, image: Image.Image) -> str:
        """
        Transcribe an image and return its text.

        Raises `ExtractionError` when the engine fails.
        """
        raise NotImplementedError


class TesseractProvider(OcrProvider):
    """An OCR provider backed by a local Tesseract install."""

    def transcribe_image(self, image: Image.Image) -> str:
        try:
            return pytesseract.image_to_string(
                image,
                lang=self.settings.OCR_LANGUAGES,
                timeout=self.settings.OCR_TIMEOUT,
            )
        except pytesseract.TesseractNotFoundError as e:
            raise ExtractionError(f"Tesseract is not installed: {e}") from e
        except RuntimeError as e:
            # TesseractError and the timeout are both RuntimeErrors
            raise ExtractionError(f"Tesseract failed: {e}") from e


class OpenAIProvider(OcrProvider):
    """An OCR provider that uses OpenAI-compatible vision models."""

    def __init__(self, settings: Settings):
        super().__init__(settings)
        self._stats = {
            "attempts": 0,
            "refusals": 0,
            "api_errors": 0,
            "fallback_successes": 0,
        }

    def get_stats(self) -> dict:
        """Return a snapshot of OCR model stats for this provider instance."""
        return dict(self._stats)

    @retry(retryable_exceptions=RETRYABLE_OPENAI_EXCEPTIONS)
    def _create_completion(self, **kwargs):
        """Call the OpenAI-compatible chat completion API with retries."""
        return openai.chat.completions.create(**kwargs)

    def transcribe_image(self, image: Image.Image) -> str:
        """
        Transcribe an image using the configured chain of models.
        """
        # Resize large images to reduce token cost and latency
        image = image.copy()
        image.thumbnail((self.settings.OCR_MAX_SIDE, self.settings.OCR_MAX_SIDE))
        buffer = BytesIO()
        image.convert("RGB").save(buffer, format="PNG")
        payload = base64.b64encode(buffer.getvalue()).decode()

        messages = [
            {"role": "system", "content": TRANSCRIPTION_PROMPT},
            {
                "role": "user",
                "content": [
                    {
                        "type": "image_url",
                        "image_url": {
                            "url": f"data:image/png;base64,{payload}",
                            "detail": "high",
                        },
                    },
                ],
            },
        ]

        models_to_try = list(dict.fromkeys(self.settings.AI_MODELS))
        primary_model = models_to_try[0] if models_to_try else ""
        for model in models_to_try:
            params = {
                "model": model,
                "messages": messages,
                "timeout": self.settings.REQUEST_TIMEOUT,
            }
            try:
                self._stats["attempts"] += 1
                response = self._create_completion(**params)
                text = (response.choices[0].message.content or "").strip()
            except openai.APIError as e:
                log.warning(
                    "API call for model failed after all retries",
                    model=model,
                    error=str(e),
                )
                self._stats["api_errors"] += 1
                continue

            if _is_refusal(text):
                log.warning("Model refused to transcribe", model=model)
                self._stats["refusals"] += 1
                continue
            if model != primary_model:
                log.info("Fallback model succeeded", model=model)
                self._stats["fallback_successes"] += 1
            return text

        raise ExtractionError("All models failed or refused to transcribe the image")


def build_ocr_provider(settings: Settings) -> OcrProvider:
    if settings.OCR_ENGINE == "openai":
        return OpenAIProvider(settings)
    return TesseractProvider(settings)


class TextExtractor(ABC):
    """Produces normalized lowercase text from a source file."""

    @abstractmethod
    def extract(self, source: SourceFile) -> str:
        raise NotImplementedError


class ImageTextExtractor(TextExtractor):
    """OCR-backed extraction for image files."""

    def __init__(self, provider: OcrProvider):
        self.provider = provider

    def extract(self, source: SourceFile) -> str:
        frames = self._bytes_to_images(source)
        try:
            texts = []
            for frame_num, frame in enumerate(frames, 1):
                if is_blank(frame):
                    log.debug("Skipping blank frame", name=source.name, frame=frame_num)
                    continue
                text = self.provider.transcribe_image(frame).strip()
                log.debug(
                    "OCR frame done",
                    name=source.name,
                    frame=frame_num,
                    frames=len(frames),
                    chars=len(text),
                )
                if text:
                    texts.append(text)
        finally:
            for frame in frames:
                frame.close()
        return "\n\n".join(texts).lower()

    @staticmethod
    def _bytes_to_images(source: SourceFile) -> list[Image.Image]:
        """
        Decode the file into fully loaded PIL images.

        Multi-frame images (e.g. TIFF) are expanded into one image per frame.
        """
        try:
            img = Image.open(BytesIO(source.data))
            img.load()  # fully decode so the underlying buffer can be released
            if getattr(img, "n_frames", 1) > 1:
                frames = [frame.copy() for frame in ImageSequence.Iterator(img)]
                img.close()
                return frames
            single = img.copy()
            img.close()
            return [single]
        except (OSError, ValueError, Image.DecompressionBombError) as e:
            raise ExtractionError(f"Unable to open image {source.name!r}: {e}") from e


class RawPdfTextExtractor(TextExtractor):
    """
    Best-effort raw-byte "extraction" for PDFs.

    This does not rasterise pages or run OCR. The bytes are decoded as UTF-8
    (invalid sequences become U+FFFD), control and other non-text characters
    are replaced with spaces, and the result is lowercased.
    """

    def extract(self, source: SourceFile) -> str:
        text = source.data.decode("utf-8", errors="replace")
        return _NON_TEXT_CHARS.sub(" ", text).lower()


class KindDispatchExtractor(TextExtractor):
    """Selects an extractor by the source file's kind."""

    def __init__(self, extractors: Mapping[FileKind, TextExtractor]):
        self.extractors = dict(extractors)

    def extract(self, source: SourceFile) -> str:
        extractor = self.extractors.get(source.kind)
        if extractor is None:
            raise ExtractionError(
                f"No extractor configured for {source.kind!r} ({source.name!r})"
            )
        return extractor.extract(source)


def build_extractor(
    settings: Settings, provider: OcrProvider | None = None
) -> KindDispatchExtractor:
    provider = provider or build_ocr_provider(settings)
    return KindDispatchExtractor(
        {
            FileKind.IMAGE: ImageTextExtractor(provider),
            FileKind.PDF: RawPdfTextExtractor(),
        }
    )
