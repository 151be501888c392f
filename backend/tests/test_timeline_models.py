import pytest
from pydantic import ValidationError

from models.timeline_models import (
    BigTitleOverlay,
    ImageOverlay,
    LowerThirdOverlay,
    ProjectManifest,
    create_empty_manifest,
)


def _stored_manifest():
    return {
        "version": 1,
        "tracks": {
            "video": [
                {
                    "id": "video-aaaaaaaaaaaa",
                    "assetId": "a1",
                    "url": "https://cdn.example.com/a.mp4",
                    "startFrame": 0,
                    "durationFrames": 150,
                    "layer": 0,
                    "transition": "fade",
                }
            ],
            "audio": [
                {
                    "id": "audio-bbbbbbbbbbbb",
                    "assetId": "a2",
                    "url": "https://cdn.example.com/a.mp3",
                    "startFrame": 30,
                    "durationFrames": 200,
                    "volume": 0.8,
                    "wordTimestamps": [{"word": "hi", "start": 0.0, "end": 0.34}],
                }
            ],
            "components": [
                {
                    "id": "text-cccccccccccc",
                    "component": "LowerThird",
                    "props": {"title": "Ada", "subtitle": "Engineer", "ribbon": "gold"},
                    "startFrame": 10,
                    "durationFrames": 60,
                    "layer": 10,
                },
                {
                    "id": "image-dddddddddddd",
                    "component": "ImageOverlay",
                    "props": {"src": "https://cdn.example.com/logo.png", "opacity": 0.5},
                    "startFrame": 0,
                    "durationFrames": 300,
                    "layer": 12,
                },
            ],
        },
        "globalSettings": {"backgroundColor": "#112233"},
    }


def test_empty_manifest_shape():
    assert create_empty_manifest().to_json() == {
        "version": 1,
        "tracks": {"video": [], "audio": [], "components": []},
        "globalSettings": {"backgroundColor": "#000000"},
    }


def test_from_json_treats_missing_manifest_as_empty():
    assert ProjectManifest.from_json(None).total_duration() == 0
    assert ProjectManifest.from_json({}).clip_counts() == {
        "video": 0,
        "audio": 0,
        "components": 0,
    }


def test_stored_manifest_parses_into_typed_overlays():
    manifest = ProjectManifest.from_json(_stored_manifest())

    lower_third, image = manifest.tracks.components
    assert isinstance(lower_third, LowerThirdOverlay)
    assert isinstance(image, ImageOverlay)
    assert lower_third.props.title == "Ada"
    assert image.props.opacity == 0.5
    assert manifest.tracks.audio[0].word_timestamps[0].word == "hi"


def test_round_trip_keeps_unknown_props_and_camel_case_keys():
    data = _stored_manifest()

    dumped = ProjectManifest.from_json(data).to_json()

    assert dumped == data
    assert dumped["tracks"]["components"][0]["props"]["ribbon"] == "gold"


def test_round_trip_keeps_explicit_null_in_unknown_props():
    data = _stored_manifest()
    data["tracks"]["components"][0]["props"]["badge"] = None

    dumped = ProjectManifest.from_json(data).to_json()

    assert dumped["tracks"]["components"][0]["props"] == {
        "title": "Ada",
        "subtitle": "Engineer",
        "ribbon": "gold",
        "badge": None,
    }


def test_empty_declared_fields_are_omitted():
    dumped = ProjectManifest.from_json(_stored_manifest()).to_json()

    assert "effects" not in dumped["tracks"]["video"][0]
    assert "fontSize" not in dumped["tracks"]["components"][0]["props"]


def test_total_duration_spans_all_tracks():
    manifest = ProjectManifest.from_json(_stored_manifest())

    # video ends at 150, audio at 230, image overlay at 300
    assert manifest.total_duration() == 300
    assert manifest.video_end_frame() == 150


def test_unknown_component_kind_is_rejected():
    data = _stored_manifest()
    data["tracks"]["components"][0]["component"] = "Confetti"

    with pytest.raises(ValidationError):
        ProjectManifest.from_json(data)


def test_negative_start_frame_is_rejected():
    with pytest.raises(ValidationError):
        BigTitleOverlay.model_validate(
            {
                "id": "text-1",
                "props": {"text": "Hello"},
                "startFrame": -1,
                "durationFrames": 10,
            }
        )
