from __future__ import annotations

import json
import logging
import time
import urllib.error
import urllib.request
from dataclasses import dataclass, field
from typing import Any, Callable
from uuid import uuid4


logger = logging.getLogger(__name__)

FAL_QUEUE_URL = "https://queue.fal.run"
DEFAULT_TTS_MODEL = "fal-ai/elevenlabs/tts/multilingual-v2"
DEFAULT_VOICE = "Rachel"
TTS_POLL_INTERVAL_SECONDS = 0.5
TTS_MAX_POLL_ATTEMPTS = 60
REQUEST_TIMEOUT_SECONDS = 120

# Average speaking rate, ~150 words per minute
WORDS_PER_SECOND = 2.5

MOCK_IMAGE_URL = "https://placehold.co/1024x1024/1a1a2e/ffffff?text=Generated+Image"
MOCK_VIDEO_URL = "https://mock-cdn.example.com/video/mock-video.mp4"
MOCK_AUDIO_URL = "https://mock-cdn.example.com/audio/mock-tts.mp3"

_STATUS_MAP = {
    "IN_QUEUE": "pending",
    "IN_PROGRESS": "processing",
    "COMPLETED": "completed",
    "FAILED": "failed",
}


class ProviderError(RuntimeError):
    """HTTP or payload failure from the generation provider."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


@dataclass
class FalQueuedRequest:
    request_id: str
    model: str
    status_url: str
    response_url: str


@dataclass
class SpeechResult:
    audio_url: str
    duration: float
    word_timestamps: list[dict[str, Any]] = field(default_factory=list)


@dataclass
class FalRequestStatus:
    status: str  # pending, processing, completed, failed
    result: dict[str, Any] | None = None
    error: str | None = None

    def output_url(self) -> str | None:
        if not self.result:
            return None
        images = self.result.get("images")
        if isinstance(images, list) and images:
            first = images[0]
            if isinstance(first, dict) and first.get("url"):
                return first["url"]
        for key in ("video", "audio", "image"):
            value = self.result.get(key)
            if isinstance(value, dict) and value.get("url"):
                return value["url"]
        return None


def estimate_speech_duration(text: str) -> float:
    return len(text.split()) / WORDS_PER_SECOND


def mock_word_timestamps(text: str) -> tuple[list[dict[str, Any]], float]:
    """Evenly paced timestamps: 0.3s + 0.02s per character for each word, 0.1s gaps."""
    timestamps: list[dict[str, Any]] = []
    current = 0.0
    for word in text.split():
        duration = 0.3 + len(word) * 0.02
        timestamps.append({"word": word, "start": current, "end": current + duration})
        current += duration + 0.1
    return timestamps, current


class FalClient:
    """
    fal.ai queue API client.

    Image and video requests are only submitted; callers poll them later with
    get_request_status. Speech is submitted and polled in-line until the audio
    is ready. With ``mock`` set no network calls are made.
    """

    def __init__(
        self,
        api_key_provider: Callable[[], str],
        mock: bool = False,
        tts_model: str = DEFAULT_TTS_MODEL,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._api_key_provider = api_key_provider
        self.mock = mock
        self.tts_model = tts_model
        self._sleep = sleep

    @classmethod
    def from_config(cls, config) -> FalClient:
        return cls(
            api_key_provider=lambda: config.credential("fal"),
            mock=config.mock_generation,
            tts_model=config.tts_model,
        )

    # -------------------------------------------------------------------------
    # Queued generation
    # -------------------------------------------------------------------------

    def submit_image(self, prompt: str, model: str, width: int, height: int) -> FalQueuedRequest:
        payload = {
            "prompt": prompt,
            "image_size": {"width": width, "height": height},
            "num_images": 1,
        }
        return self._submit(model, payload)

    def submit_video(
        self,
        image_url: str,
        prompt: str,
        model: str,
        duration: int = 5,
    ) -> FalQueuedRequest:
        payload = {
            "prompt": prompt,
            "image_url": image_url,
            "duration": str(duration),
        }
        return self._submit(model, payload)

    def get_request_status(self, status_url: str, response_url: str) -> FalRequestStatus:
        if self.mock:
            return self._mock_status(response_url)

        try:
            status_data = self._request_json("GET", status_url)
        except ProviderError as exc:
            if exc.status_code == 404:
                return FalRequestStatus(status="failed", error="Request not found or expired")
            raise

        status = _STATUS_MAP.get(str(status_data.get("status")), "processing")
        if status != "completed":
            return FalRequestStatus(status=status)

        try:
            result = self._request_json("GET", response_url)
        except ProviderError as exc:
            return FalRequestStatus(status="failed", error=str(exc))
        return FalRequestStatus(status="completed", result=result)

    # -------------------------------------------------------------------------
    # Speech
    # -------------------------------------------------------------------------

    def generate_speech(self, text: str, voice: str | None = None) -> SpeechResult:
        """Text to speech with word-level timestamps; blocks until the audio is ready."""
        if self.mock:
            timestamps, duration = mock_word_timestamps(text)
            return SpeechResult(
                audio_url=MOCK_AUDIO_URL,
                duration=duration,
                word_timestamps=timestamps,
            )

        queued = self._submit(
            self.tts_model,
            {
                "text": text,
                "voice": voice or DEFAULT_VOICE,
                "stability": 0.5,
                "similarity_boost": 0.75,
                "speed": 1,
                "timestamps": True,
            },
        )
        result = self._wait_for_result(queued)

        audio = result.get("audio") or {}
        audio_url = audio.get("url") if isinstance(audio, dict) else None
        if not audio_url:
            raise ProviderError("TTS completed without an audio URL")

        word_timestamps = [
            {"word": item.get("text", ""), "start": item.get("start", 0), "end": item.get("end", 0)}
            for item in result.get("timestamps") or []
        ]
        duration = (
            float(word_timestamps[-1]["end"])
            if word_timestamps
            else estimate_speech_duration(text)
        )
        return SpeechResult(
            audio_url=audio_url,
            duration=duration,
            word_timestamps=word_timestamps,
        )

    def _wait_for_result(self, queued: FalQueuedRequest) -> dict[str, Any]:
        for _ in range(TTS_MAX_POLL_ATTEMPTS):
            status_data = self._request_json("GET", queued.status_url)
            status = status_data.get("status")
            if status == "COMPLETED":
                return self._request_json("GET", queued.response_url)
            if status == "FAILED":
                raise ProviderError("TTS generation failed")
            self._sleep(TTS_POLL_INTERVAL_SECONDS)
        raise ProviderError("TTS generation timed out")

    # -------------------------------------------------------------------------
    # HTTP
    # -------------------------------------------------------------------------

    def _submit(self, model: str, payload: dict[str, Any]) -> FalQueuedRequest:
        if self.mock:
            return self._mock_submit(model)

        data = self._request_json("POST", f"{FAL_QUEUE_URL}/{model}", payload)
        request_id = str(data.get("request_id") or "")
        if not request_id:
            raise ProviderError("fal.ai did not return a request id")

        base_url = f"{FAL_QUEUE_URL}/{model}/requests/{request_id}"
        logger.info("Submitted fal request %s for model %s", request_id, model)
        return FalQueuedRequest(
            request_id=request_id,
            model=model,
            status_url=data.get("status_url") or f"{base_url}/status",
            response_url=data.get("response_url") or base_url,
        )

    def _request_json(
        self,
        method: str,
        url: str,
        payload: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        data = None
        if payload is not None:
            data = json.dumps(payload).encode("utf-8")

        request = urllib.request.Request(url=url, data=data, method=method.upper())
        request.add_header("Authorization", f"Key {self._api_key_provider()}")
        if payload is not None:
            request.add_header("Content-Type", "application/json")

        try:
            with urllib.request.urlopen(request, timeout=REQUEST_TIMEOUT_SECONDS) as response:
                body = response.read().decode("utf-8")
                parsed = json.loads(body)
                if isinstance(parsed, dict):
                    return parsed
                raise ProviderError("Unexpected non-object response from fal.ai")
        except urllib.error.HTTPError as exc:
            details = ""
            try:
                details = exc.read().decode("utf-8", errors="ignore")
            except Exception:
                details = ""
            raise ProviderError(
                f"fal.ai request failed ({exc.code}): {details[:500]}",
                status_code=exc.code,
            ) from exc
        except urllib.error.URLError as exc:
            raise ProviderError(f"fal.ai request failed: {exc.reason}") from exc

    # -------------------------------------------------------------------------
    # Mock mode
    # -------------------------------------------------------------------------

    def _mock_submit(self, model: str) -> FalQueuedRequest:
        request_id = f"mock-{uuid4().hex}"
        base_url = f"{FAL_QUEUE_URL}/{model}/requests/{request_id}"
        return FalQueuedRequest(
            request_id=request_id,
            model=model,
            status_url=f"{base_url}/status",
            response_url=base_url,
        )

    def _mock_status(self, response_url: str) -> FalRequestStatus:
        if "/requests/mock-" not in response_url:
            return FalRequestStatus(status="failed", error="Request not found or expired")
        if "video" in response_url or "kling" in response_url:
            return FalRequestStatus(
                status="completed",
                result={"video": {"url": MOCK_VIDEO_URL}},
            )
        return FalRequestStatus(
            status="completed",
            result={"images": [{"url": MOCK_IMAGE_URL, "width": 1024, "height": 1024}]},
        )
