# mediaflow/app/services/transcription_pipeline.py
"""
Speech-to-text over a local media file, backed by faster-whisper.

The engine never downloads anything: callers hand it a path they own and
remain responsible for deleting it.
"""
from __future__ import annotations

import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from mediaflow.app.domain.models import TranscriptResult, TranscriptSegment
from mediaflow.services.errors import TranscriptionServiceError

if TYPE_CHECKING:
    from faster_whisper import WhisperModel

logger = logging.getLogger(__name__)

WHISPER_MODEL = os.getenv("WHISPER_MODEL", "small")
WHISPER_DEVICE = os.getenv("WHISPER_DEVICE", "auto")  # auto | cuda | cpu
WHISPER_BEAM_SIZE = int(os.getenv("WHISPER_BEAM_SIZE", "5"))

# compute_type per device
_COMPUTE_TYPES = {"cuda": "float16", "cpu": "int8"}


def _cuda_supports_float16() -> bool:
    import ctranslate2

    try:
        return "float16" in ctranslate2.get_supported_compute_types("cuda")
    except (RuntimeError, ValueError) as exc:
        logger.debug("CUDA detection failed: %s", exc)
        return False


@lru_cache(maxsize=1)
def _detect_device() -> tuple[str, str]:
    """Pick (device, compute_type); ``WHISPER_DEVICE`` wins over probing."""
    device = WHISPER_DEVICE.lower()
    if device not in _COMPUTE_TYPES:
        device = "cuda" if _cuda_supports_float16() else "cpu"
    logger.info("Speech engine device: %s", device)
    return device, _COMPUTE_TYPES[device]


@lru_cache(maxsize=1)
def _get_model() -> "WhisperModel":
    """Load the Whisper model once, on first use."""
    from faster_whisper import WhisperModel

    device, compute_type = _detect_device()
    logger.info("Loading faster-whisper %s on %s (%s)", WHISPER_MODEL, device, compute_type)
    try:
        return WhisperModel(WHISPER_MODEL, device=device, compute_type=compute_type)
    except (RuntimeError, ValueError, OSError) as exc:
        raise TranscriptionServiceError(f"Failed to initialize faster-whisper: {exc}") from exc


class TranscriptionPipeline:
    """
    Speech engine used by ``Transcriber``.

    Silences are skipped with VAD and segments are decoded without
    conditioning on the previous text.
    """

    def __init__(self, language: Optional[str] = None):
        self.language = language
        self.model_version = WHISPER_MODEL

    def transcribe(self, media_path: Path, verbose: bool = False) -> TranscriptResult:
        """
        Transcribe an audio/video file.

        Args:
            media_path: Path to the media file
            verbose: Keep segment-level timestamps in the result

        Returns:
            TranscriptResult; ``segments`` is empty unless ``verbose``

        Raises:
            TranscriptionServiceError: If the file is missing or decoding fails
        """
        if not media_path.exists():
            raise TranscriptionServiceError(f"Media file not found: {media_path}")

        model = _get_model()
        logger.info("Transcribing %s (language=%s)", media_path.name, self.language or "auto")

        try:
            raw_segments, info = model.transcribe(
                str(media_path),
                language=self.language,
                vad_filter=True,
                vad_parameters={"min_silence_duration_ms": 500, "speech_pad_ms": 200},
                beam_size=WHISPER_BEAM_SIZE,
                condition_on_previous_text=False,
            )
            # The segment iterator is lazy: decoding happens here.
            segments = tuple(
                TranscriptSegment(start_seconds=seg.start, end_seconds=seg.end, text=seg.text.strip())
                for seg in raw_segments
                if seg.text.strip()
            )
        except Exception as exc:
            logger.error("Speech engine failed on %s: %s", media_path.name, exc)
            raise TranscriptionServiceError(f"Transcription failed: {exc}") from exc

        text = " ".join(seg.text for seg in segments)
        duration = float(getattr(info, "duration", 0.0) or 0.0)
        logger.info("Transcribed %.1fs of audio into %d segments", duration, len(segments))
        return TranscriptResult(
            text=text,
            segments=segments if verbose else (),
            duration_seconds=duration,
        )
