import pytest

from agent.director.config import AgentConfig, MissingCredentialError
from utils.fal_provider import (
    FalClient,
    FalRequestStatus,
    MOCK_AUDIO_URL,
    MOCK_IMAGE_URL,
    MOCK_VIDEO_URL,
    ProviderError,
    estimate_speech_duration,
    mock_word_timestamps,
)


def _mock_client():
    return FalClient(api_key_provider=lambda: "unused", mock=True)


class _ScriptedClient(FalClient):
    """Real client logic with the HTTP layer replaced by a response script."""

    def __init__(self, responses):
        super().__init__(api_key_provider=lambda: "key", sleep=lambda seconds: None)
        self.responses = list(responses)
        self.requests = []

    def _request_json(self, method, url, payload=None):
        self.requests.append((method, url, payload))
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class TestMockMode:
    def test_submissions_get_mock_request_ids(self):
        queued = _mock_client().submit_image("a red fox", "fal-ai/flux-pro/v1.1", 1080, 1920)

        assert queued.request_id.startswith("mock-")
        assert queued.status_url.endswith(f"/requests/{queued.request_id}/status")

    def test_image_request_completes_immediately(self):
        client = _mock_client()
        queued = client.submit_image("a red fox", "fal-ai/flux-pro/v1.1", 1080, 1920)

        status = client.get_request_status(queued.status_url, queued.response_url)

        assert status.status == "completed"
        assert status.output_url() == MOCK_IMAGE_URL

    def test_video_request_returns_video_url(self):
        client = _mock_client()
        queued = client.submit_video(
            "https://cdn.example.com/i.png", "pan", "fal-ai/kling-video/v1.5/pro/image-to-video"
        )

        status = client.get_request_status(queued.status_url, queued.response_url)

        assert status.output_url() == MOCK_VIDEO_URL

    def test_unknown_request_fails(self):
        status = _mock_client().get_request_status(
            "https://queue.fal.run/x/requests/abc/status",
            "https://queue.fal.run/x/requests/abc",
        )

        assert status.status == "failed"
        assert status.error == "Request not found or expired"

    def test_speech_has_estimated_word_timestamps(self):
        speech = _mock_client().generate_speech("hi there")

        assert speech.audio_url == MOCK_AUDIO_URL
        assert [w["word"] for w in speech.word_timestamps] == ["hi", "there"]
        first, second = speech.word_timestamps
        assert first["end"] == pytest.approx(0.34)
        assert second["start"] == pytest.approx(0.44)
        assert speech.duration == pytest.approx(0.44 + 0.4 + 0.1)


def test_mock_word_timestamps_for_empty_text():
    assert mock_word_timestamps("") == ([], 0.0)


def test_estimate_speech_duration():
    assert estimate_speech_duration("one two three four five") == 2.0


def test_output_url_prefers_first_image():
    status = FalRequestStatus(
        status="completed",
        result={"images": [{"url": "a.png"}, {"url": "b.png"}], "image": {"url": "c.png"}},
    )

    assert status.output_url() == "a.png"


class TestQueueApi:
    def test_submit_posts_payload_to_model_queue(self):
        client = _ScriptedClient([{"request_id": "r1"}])

        queued = client.submit_video("https://cdn/i.png", "drift", "fal-ai/kling", duration=10)

        method, url, payload = client.requests[0]
        assert (method, url) == ("POST", "https://queue.fal.run/fal-ai/kling")
        assert payload == {"prompt": "drift", "image_url": "https://cdn/i.png", "duration": "10"}
        assert queued.status_url == "https://queue.fal.run/fal-ai/kling/requests/r1/status"

    def test_submit_without_request_id_is_an_error(self):
        client = _ScriptedClient([{}])

        with pytest.raises(ProviderError):
            client.submit_image("a fox", "fal-ai/flux", 512, 512)

    def test_status_maps_queue_states(self):
        client = _ScriptedClient([{"status": "IN_QUEUE"}, {"status": "IN_PROGRESS"}])

        assert client.get_request_status("s", "r").status == "pending"
        assert client.get_request_status("s", "r").status == "processing"

    def test_completed_status_fetches_result(self):
        client = _ScriptedClient(
            [{"status": "COMPLETED"}, {"video": {"url": "https://cdn/v.mp4"}}]
        )

        status = client.get_request_status("s", "r")

        assert status.output_url() == "https://cdn/v.mp4"

    def test_expired_request(self):
        client = _ScriptedClient([ProviderError("gone", status_code=404)])

        status = client.get_request_status("s", "r")

        assert status.status == "failed"
        assert status.error == "Request not found or expired"

    def test_speech_polls_until_complete(self):
        client = _ScriptedClient(
            [
                {"request_id": "t1"},
                {"status": "IN_QUEUE"},
                {"status": "COMPLETED"},
                {
                    "audio": {"url": "https://cdn/tts.mp3"},
                    "timestamps": [
                        {"text": "hello", "start": 0.0, "end": 0.4},
                        {"text": "world", "start": 0.5, "end": 1.1},
                    ],
                },
            ]
        )

        speech = client.generate_speech("hello world", "Adam")

        assert speech.audio_url == "https://cdn/tts.mp3"
        assert speech.duration == 1.1
        assert speech.word_timestamps[1] == {"word": "world", "start": 0.5, "end": 1.1}
        assert client.requests[0][2]["voice"] == "Adam"

    def test_speech_without_timestamps_estimates_duration(self):
        client = _ScriptedClient(
            [{"request_id": "t1"}, {"status": "COMPLETED"}, {"audio": {"url": "u"}}]
        )

        speech = client.generate_speech("one two three four five")

        assert speech.duration == 2.0
        assert speech.word_timestamps == []

    def test_failed_speech_raises(self):
        client = _ScriptedClient([{"request_id": "t1"}, {"status": "FAILED"}])

        with pytest.raises(ProviderError, match="TTS generation failed"):
            client.generate_speech("hello")


def test_missing_key_is_reported_on_first_request():
    client = FalClient.from_config(AgentConfig(fal_api_key=None))

    with pytest.raises(MissingCredentialError):
        client.submit_image("a fox", "fal-ai/flux", 512, 512)
