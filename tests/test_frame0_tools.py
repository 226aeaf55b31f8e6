import json

import pytest

from frame0_errors import ApplicationError, CommandTimeoutError, TransportUnavailableError
from frame0_tools import (
    Frame0Tools,
    Point,
    convert_color,
    create_server,
    design_screen,
    filter_page,
    filter_shape,
    format_error,
)


class RecordingCommunicator:
    def __init__(self, result=None, error=None):
        self.calls = []
        self.result = result
        self.error = error

    async def send_command(self, command, params=None, timeout=None):
        self.calls.append((command, params))
        if self.error is not None:
            raise self.error
        return self.result


@pytest.mark.parametrize("value, expected", [
    ("$background", "$background"),
    ("$Foreground", "$foreground"),
    ("$red9", "$red9"),
    ("blue12", "$blue12"),
    ("sky", "$sky9"),
    ("#FF0000", "#ff0000"),
    ("#abc", "#abc"),
    ("transparent", "transparent"),
    ("white", "#ffffff"),
    (None, None),
])
def test_convert_color(value, expected):
    assert convert_color(value) == expected


@pytest.mark.parametrize("value", ["$red13", "$red0", "chartreuse", "#12345", ""])
def test_convert_color_rejects_unknown(value):
    with pytest.raises(ValueError):
        convert_color(value)


def test_filter_shape_strips_noise_recursively():
    shape = {
        "id": "shp_1",
        "type": "Rectangle",
        "name": None,
        "_internal": 1,
        "tags": ["a"],
        "strokeWidth": 2,
        "children": [{"id": "shp_2", "fontFamily": "Loranto", "text": "OK"}],
    }

    assert filter_shape(shape) == {
        "id": "shp_1",
        "type": "Rectangle",
        "children": [{"id": "shp_2", "text": "OK"}],
    }


def test_filter_page_keeps_identity_and_shapes():
    page = {"id": "p1", "name": "Home", "zoom": 1.5, "children": [{"id": "s1", "opacity": 1}]}
    assert filter_page(page) == {"id": "p1", "name": "Home", "children": [{"id": "s1"}]}
    assert filter_page({"id": "p2", "name": "Empty", "scrollX": 0}) == {"id": "p2", "name": "Empty"}


def test_format_error_names_the_outcome():
    rejected = format_error("get_shape", ApplicationError({"code": "not_found", "message": "not found"}))
    unknown = format_error("move_shape", CommandTimeoutError("timed out"))
    not_sent = format_error("add_page", TransportUnavailableError("Not connected to Frame0"))

    assert rejected == "Error (not_found, rejected by Frame0): get_shape failed: not found"
    assert "outcome unknown" in unknown
    assert "not applied" in not_sent


@pytest.mark.asyncio
async def test_create_rectangle_sends_converted_shape():
    communicator = RecordingCommunicator(result={"id": "shp_1", "type": "Rectangle", "tags": []})
    tools = Frame0Tools(communicator)

    reply = await tools.create_rectangle(left=10, top=20, width=100, height=40, parent_id="frm_1",
                                         fill_color="blue", corners=[4, 4, 4, 4], text="Sign in")

    assert communicator.calls == [("shape:create-shape", {
        "type": "Rectangle",
        "parentId": "frm_1",
        "shapeProps": {
            "left": 10, "top": 20, "width": 100, "height": 40,
            "fillColor": "$blue9", "corners": [4, 4, 4, 4], "text": "Sign in",
        },
    })]
    assert json.loads(reply) == {"id": "shp_1", "type": "Rectangle"}


@pytest.mark.asyncio
async def test_invalid_arguments_send_nothing():
    communicator = RecordingCommunicator()
    tools = Frame0Tools(communicator)

    bad_color = await tools.create_ellipse(left=0, top=0, width=10, height=10, fill_color="chartreuse")
    bad_corners = await tools.create_rectangle(left=0, top=0, width=10, height=10, corners=[1, 2])
    short_line = await tools.create_line(points=[Point(x=0, y=0)])
    empty_update = await tools.update_shape(shape_id="shp_1")

    for reply in (bad_color, bad_corners, short_line, empty_update):
        assert reply.startswith("Error (invalid_argument, not applied)")
    assert communicator.calls == []


@pytest.mark.asyncio
async def test_create_frame_uses_typical_size():
    communicator = RecordingCommunicator(result={"id": "frm_1"})
    tools = Frame0Tools(communicator)

    await tools.create_frame(frame_type="Phone", left=0, top=0)

    command, params = communicator.calls[0]
    assert command == "shape:create-shape-from-library-by-query"
    assert params == {"query": "Phone&@Frame", "shapeProps": {"left": 0, "top": 0, "width": 320, "height": 690}}


@pytest.mark.asyncio
async def test_create_line_sends_path():
    communicator = RecordingCommunicator(result={"id": "ln_1"})
    tools = Frame0Tools(communicator)

    await tools.create_line(points=[Point(x=0, y=0), Point(x=50, y=10)], stroke_color="$gray8")

    assert communicator.calls[0] == ("shape:create-shape", {
        "type": "Line",
        "shapeProps": {"path": [[0, 0], [50, 10]], "strokeColor": "$gray8"},
    })


@pytest.mark.asyncio
async def test_shape_and_page_commands():
    communicator = RecordingCommunicator(result={"id": "x", "name": "Home"})
    tools = Frame0Tools(communicator)

    await tools.move_shape(shape_id="shp_1", dx=5, dy=-5)
    await tools.delete_shape(shape_id="shp_1")
    await tools.update_shape(shape_id="shp_2", font_color="red3")
    await tools.add_page(name="Home")
    await tools.get_page()

    assert communicator.calls == [
        ("shape:move", {"shapeId": "shp_1", "dx": 5, "dy": -5}),
        ("edit:delete", {"shapeIdArray": ["shp_1"]}),
        ("shape:update-shape", {"shapeId": "shp_2", "shapeProps": {"fontColor": "$red3"}}),
        ("page:add", {"pageProps": {"name": "Home"}}),
        ("page:get", {"exportShapes": True}),
    ]


@pytest.mark.asyncio
async def test_get_all_pages_reports_ids_and_names():
    pages = [{"id": "p1", "name": "Home", "children": [{"id": "s1"}]}, {"id": "p2", "name": "Login"}]
    tools = Frame0Tools(RecordingCommunicator(result=pages))

    reply = await tools.get_all_pages()

    assert json.loads(reply) == [{"id": "p1", "name": "Home"}, {"id": "p2", "name": "Login"}]


@pytest.mark.asyncio
async def test_command_failure_becomes_text_reply():
    error = ApplicationError({"message": "not found"}, command="shape:get-shape")
    tools = Frame0Tools(RecordingCommunicator(error=error))

    reply = await tools.get_shape(shape_id="missing")

    assert reply == "Error (unknown_app_error, rejected by Frame0): get_shape failed: not found"


@pytest.mark.asyncio
async def test_unexpected_failure_becomes_text_reply():
    tools = Frame0Tools(RecordingCommunicator(error=RuntimeError("boom")))

    reply = await tools.get_available_icons()

    assert reply.startswith("Error (internal_error")
    assert "boom" in reply


def test_design_screen_prompt_mentions_screen():
    text = design_screen("Login screen")
    assert "create_frame()" in text
    assert "Login screen" in text


@pytest.mark.asyncio
async def test_server_registers_tools_and_prompt():
    mcp = create_server(RecordingCommunicator())

    tools = {tool.name: tool for tool in await mcp.list_tools()}
    prompts = [prompt.name for prompt in await mcp.list_prompts()]

    assert len(tools) == 19
    assert {"create_frame", "create_rectangle", "update_shape", "delete_shape", "move_shape",
            "add_page", "get_available_icons"} <= set(tools)
    schema = tools["create_rectangle"].inputSchema
    assert "self" not in schema["properties"]
    assert set(schema["required"]) == {"left", "top", "width", "height"}
    assert prompts == ["design_screen"]
