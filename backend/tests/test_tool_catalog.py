import pytest

from agent.director.tools import (
    ArgumentValidationError,
    get_tools,
    parse_tool_arguments,
    parse_tool_arguments_lenient,
    validate_arguments,
)
from agent.director.types import (
    ArgumentParseError,
    GenerateVideoArgs,
    ListAssetsArgs,
    ToolCallRequest,
    ToolName,
    UpdateTimelineArgs,
)


def _tool(name):
    for tool in get_tools():
        if tool["function"]["name"] == name:
            return tool["function"]
    raise AssertionError(f"missing tool {name}")


def test_catalog_lists_every_tool_once():
    names = [tool["function"]["name"] for tool in get_tools()]

    assert names == [tool.value for tool in ToolName]
    assert all(tool["type"] == "function" for tool in get_tools())


def test_get_tools_returns_independent_copies():
    tools = get_tools()
    tools[0]["function"]["name"] = "tampered"

    assert get_tools()[0]["function"]["name"] == ToolName.GET_PROJECT_STATE.value


def test_generate_image_schema():
    parameters = _tool("generateImage")["parameters"]

    assert parameters["required"] == ["prompt"]
    assert parameters["properties"]["prompt"]["minLength"] == 10
    assert parameters["properties"]["prompt"]["maxLength"] == 1000
    aspect = parameters["properties"]["aspectRatio"]
    assert aspect["enum"] == ["16:9", "9:16", "1:1", "4:3", "3:4"]
    assert "anyOf" not in aspect
    assert "title" not in aspect


def test_update_timeline_schema_uses_camel_case_names():
    parameters = _tool("updateTimeline")["parameters"]

    assert parameters["required"] == ["action"]
    assert {"videoAssetId", "textOverlayType", "newStartFrame", "backgroundColor"} <= set(
        parameters["properties"]
    )
    assert parameters["properties"]["textOverlayType"]["enum"] == [
        "BigTitle",
        "LowerThird",
        "KaraokeText",
    ]


def test_argument_free_tool_schema():
    parameters = _tool("getProjectState")["parameters"]

    assert parameters == {"type": "object", "properties": {}}


def test_list_assets_schema_exposes_type():
    properties = _tool("listAssets")["parameters"]["properties"]

    assert properties["type"]["enum"] == ["image", "video", "audio", "all"]
    assert properties["type"]["default"] == "all"


class TestValidateArguments:
    def test_accepts_camel_case_payload(self):
        args = validate_arguments(
            ToolName.GENERATE_VIDEO,
            {"imageAssetId": "abc", "motionPrompt": "slow pan right"},
        )

        assert isinstance(args, GenerateVideoArgs)
        assert args.image_asset_id == "abc"
        assert args.duration == 5

    def test_rejects_short_prompt(self):
        with pytest.raises(ArgumentValidationError) as exc_info:
            validate_arguments(ToolName.GENERATE_IMAGE, {"prompt": "cat"})

        assert str(exc_info.value).startswith("Invalid arguments: prompt:")

    def test_rejects_out_of_range_duration(self):
        with pytest.raises(ArgumentValidationError):
            validate_arguments(
                ToolName.GENERATE_VIDEO,
                {"imageAssetId": "abc", "motionPrompt": "slow pan", "duration": 12},
            )

    def test_rejects_unknown_timeline_action(self):
        with pytest.raises(ArgumentValidationError):
            validate_arguments(ToolName.UPDATE_TIMELINE, {"action": "explode"})

    def test_ignores_extra_fields(self):
        args = validate_arguments(
            ToolName.UPDATE_TIMELINE,
            {"action": "setBackground", "backgroundColor": "#FFF", "mood": "happy"},
        )

        assert isinstance(args, UpdateTimelineArgs)
        assert args.background_color == "#FFF"

    def test_list_assets_defaults_to_all(self):
        args = validate_arguments(ToolName.LIST_ASSETS, {})

        assert isinstance(args, ListAssetsArgs)
        assert args.asset_type == "all"


class TestParseArguments:
    def test_parses_json_object(self):
        call = ToolCallRequest(id="c1", name="listAssets", arguments='{"type": "image"}')

        assert parse_tool_arguments(call) == {"type": "image"}

    def test_blank_arguments_are_empty(self):
        call = ToolCallRequest(id="c1", name="getProjectState", arguments="")

        assert parse_tool_arguments(call) == {}

    @pytest.mark.parametrize("raw", ['{"type": "image"', "[1, 2]", "not json"])
    def test_malformed_arguments_raise(self, raw):
        call = ToolCallRequest(id="c1", name="listAssets", arguments=raw)

        with pytest.raises(ArgumentParseError) as exc_info:
            parse_tool_arguments(call)

        assert exc_info.value.call_id == "c1"
        assert exc_info.value.tool_name == "listAssets"

    def test_lenient_parse_falls_back_to_empty_and_logs(self, caplog):
        call = ToolCallRequest(id="c9", name="listAssets", arguments="{oops")

        with caplog.at_level("WARNING", logger="agent.director.tools"):
            assert parse_tool_arguments_lenient(call) == {}

        assert "c9" in caplog.text
