"""
Frame0 Tools - MCP Tool Definitions

This module defines the tools an AI assistant host can use to draw in Frame0.
Each tool validates its arguments, translates colors, sends exactly one
command through the Frame0Communicator, strips noisy fields from the
returned shapes/pages, and replies with text.
"""

import json
import logging
import re
from typing import Annotated, Any, Callable, Dict, List, Literal, Optional

from mcp.server.fastmcp import FastMCP
from pydantic import BaseModel, ConfigDict, Field

from frame0_errors import OUTCOME_NOT_APPLIED, OUTCOME_REJECTED, OUTCOME_UNKNOWN, CommandError
from system_prompt import (
    AVAILABLE_COLORS_PROMPT,
    DESIGN_SCREEN_PROMPT,
    FRAME_SIZES_PROMPT,
    PALETTE_COLORS,
    SERVER_INSTRUCTIONS,
)

logger = logging.getLogger(__name__)


# ============================================
# ============ INTERNAL HELPERS ==============
# ============================================

FRAME_SIZES: Dict[str, tuple] = {
    "Phone": (320, 690),
    "Tablet": (520, 790),
    "Desktop": (800, 600),
    "Browser": (800, 600),
    "Watch": (198, 242),
    "TV": (960, 570),
    "Custom Frame": (800, 600),
}

_OUTCOME_TEXT = {
    OUTCOME_NOT_APPLIED: "not applied",
    OUTCOME_UNKNOWN: "outcome unknown, check the document before retrying",
    OUTCOME_REJECTED: "rejected by Frame0",
}

_PALETTE_RE = re.compile(r"^\$?(%s)([1-9]|1[0-2])$" % "|".join(PALETTE_COLORS))
_HEX_RE = re.compile(r"^#(?:[0-9a-f]{3}|[0-9a-f]{6}|[0-9a-f]{8})$")
_SPECIAL_COLORS = {"$background", "$foreground", "transparent"}
_NAMED_COLORS = {"white": "#ffffff", "black": "#000000"}

# Internal or styling fields that only add noise to a tool reply
_NOISY_SHAPE_FIELDS = frozenset({
    "tags",
    "anchored",
    "constraints",
    "reference",
    "referenceMirror",
    "fillStyle",
    "hatchStyle",
    "strokeWidth",
    "strokePattern",
    "opacity",
    "wordWrap",
    "lineHeight",
    "paragraphSpacing",
    "fontFamily",
    "fontWeight",
    "fontStyle",
    "headEndType",
    "tailEndType",
    "headAnchor",
    "tailAnchor",
    "routeType",
    "script",
})


def _to_json_string(result: Any) -> str:
    """Convert a Frame0 result to a JSON string for model reasoning."""
    if isinstance(result, str):
        return result
    try:
        return json.dumps(result, ensure_ascii=False)
    except (TypeError, ValueError):
        return json.dumps({"result": str(result)}, ensure_ascii=False)


def convert_color(value: Optional[str]) -> Optional[str]:
    """Translate a symbolic color name into a value Frame0 accepts.

    Accepts $background, $foreground, $<color><level>, hex values and
    'transparent' as-is. A bare palette name maps to level 9 ('red' -> '$red9').
    Raises ValueError for anything else.
    """
    if value is None:
        return None
    color = value.strip().lower()
    if color in _SPECIAL_COLORS:
        return color
    if _HEX_RE.match(color):
        return color
    if color in _NAMED_COLORS:
        return _NAMED_COLORS[color]
    if color in PALETTE_COLORS:
        return f"${color}9"
    match = _PALETTE_RE.match(color)
    if match:
        return f"${match.group(1)}{match.group(2)}"
    raise ValueError(f"Unknown color '{value}'. {AVAILABLE_COLORS_PROMPT}")


def filter_shape(shape: Any) -> Any:
    """Drop empty, private and noisy fields from a shape (recursively for children)."""
    if isinstance(shape, list):
        return [filter_shape(item) for item in shape]
    if not isinstance(shape, dict):
        return shape

    filtered: Dict[str, Any] = {}
    for key, value in shape.items():
        if value is None or key.startswith("_") or key in _NOISY_SHAPE_FIELDS:
            continue
        if key == "children":
            value = filter_shape(value)
        filtered[key] = value
    return filtered


def filter_page(page: Any) -> Any:
    if not isinstance(page, dict):
        return page
    filtered = {"id": page.get("id"), "name": page.get("name")}
    if "children" in page:
        filtered["children"] = filter_shape(page.get("children") or [])
    return filtered


def filter_page_list(pages: Any) -> Any:
    if not isinstance(pages, list):
        return pages
    return [{"id": p.get("id"), "name": p.get("name")} if isinstance(p, dict) else p for p in pages]


def format_error(tool_name: str, error: Exception) -> str:
    """Render a failure as a reply the assistant can act on."""
    if isinstance(error, CommandError):
        outcome = _OUTCOME_TEXT.get(error.outcome, error.outcome)
        return f"Error ({error.code}, {outcome}): {tool_name} failed: {error.message}"
    return f"Error (internal_error, {_OUTCOME_TEXT[OUTCOME_UNKNOWN]}): {tool_name} failed: {error}"


def _invalid(tool_name: str, message: str) -> str:
    return f"Error (invalid_argument, {_OUTCOME_TEXT[OUTCOME_NOT_APPLIED]}): {tool_name} failed: {message}"


def _compact(values: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in values.items() if v is not None}


# ============================================
# == PYDANTIC MODELS FOR COMPLEX PARAMETERS ==
# ============================================

class Point(BaseModel):
    model_config = ConfigDict(extra='forbid')
    x: float
    y: float


FillColor = Annotated[Optional[str], Field(description=f"Fill color. {AVAILABLE_COLORS_PROMPT}")]
StrokeColor = Annotated[Optional[str], Field(description=f"Stroke color. {AVAILABLE_COLORS_PROMPT}")]
FontColor = Annotated[Optional[str], Field(description=f"Font color. {AVAILABLE_COLORS_PROMPT}")]
FontSize = Annotated[Optional[float], Field(description="Font size of the text. Base font size is 16px.")]
ParentId = Annotated[Optional[str], Field(description="Parent ID of the shape. Typically the frame ID")]
ShapeName = Annotated[Optional[str], Field(description="Name of the shape")]
Corners = Annotated[
    Optional[List[float]],
    Field(description="Corner radius: [left-top, right-top, right-bottom, left-bottom]."),
]
HorzAlign = Annotated[
    Optional[Literal["left", "center", "right"]],
    Field(description="Horizontal alignment of the text inside the shape. Default is 'center'."),
]
VertAlign = Annotated[
    Optional[Literal["top", "middle", "bottom"]],
    Field(description="Vertical alignment of the text inside the shape. Default is 'middle'."),
]


# ============================================
# ===============  TOOLS  ====================
# ============================================

class Frame0Tools:
    """Tool handlers bound to one Frame0Communicator."""

    def __init__(self, communicator):
        self.communicator = communicator

    async def _run(self, tool_name: str, command: str, params: Dict[str, Any],
                   shaper: Optional[Callable[[Any], Any]] = None) -> str:
        try:
            result = await self.communicator.send_command(command, params)
        except CommandError as e:
            logger.error(f"❌ Tool {tool_name} failed ({e.code}): {e.message}")
            return format_error(tool_name, e)
        except Exception as e:
            logger.error(f"❌ Communication/system error in {tool_name}: {str(e)}")
            return format_error(tool_name, e)
        if shaper is not None:
            result = shaper(result)
        return _to_json_string(result)

    async def _create_shape(self, tool_name: str, shape_type: str, parent_id: Optional[str],
                            props: Dict[str, Any]) -> str:
        try:
            for key in ("fillColor", "strokeColor", "fontColor"):
                props[key] = convert_color(props.get(key))
        except ValueError as e:
            return _invalid(tool_name, str(e))

        corners = props.get("corners")
        if corners is not None and len(corners) != 4:
            return _invalid(tool_name, "corners must be an array of 4 numbers")

        params = _compact({"type": shape_type, "parentId": parent_id, "shapeProps": _compact(props)})
        logger.info(f"🧱 {tool_name}: parent={parent_id}")
        return await self._run(tool_name, "shape:create-shape", params, filter_shape)

    # === Shapes ===

    async def create_frame(
        self,
        frame_type: Annotated[
            Literal["Phone", "Tablet", "Desktop", "Browser", "Watch", "TV", "Custom Frame"],
            Field(description="Frame type"),
        ],
        left: Annotated[float, Field(description="Left coordinate of the frame")],
        top: Annotated[float, Field(description="Top coordinate of the frame")],
        width: Annotated[Optional[float], Field(description="Width of the frame. Defaults to the typical size")] = None,
        height: Annotated[Optional[float], Field(description="Height of the frame. Defaults to the typical size")] = None,
        name: ShapeName = None,
        fill_color: FillColor = None,
    ) -> str:
        """Create a frame in Frame0. The frame is the parent of all UI elements in a screen."""
        if frame_type not in FRAME_SIZES:
            return _invalid("create_frame", f"Unknown frame type '{frame_type}'")
        try:
            fill = convert_color(fill_color)
        except ValueError as e:
            return _invalid("create_frame", str(e))

        default_width, default_height = FRAME_SIZES[frame_type]
        params = {
            "query": f"{frame_type}&@Frame",
            "shapeProps": _compact({
                "name": name,
                "left": left,
                "top": top,
                "width": default_width if width is None else width,
                "height": default_height if height is None else height,
                "fillColor": fill,
            }),
        }
        logger.info(f"🖼️ create_frame: type={frame_type} at ({left}, {top})")
        return await self._run("create_frame", "shape:create-shape-from-library-by-query", params, filter_shape)

    async def create_rectangle(
        self,
        left: Annotated[float, Field(description="Left coordinate of the rectangle")],
        top: Annotated[float, Field(description="Top coordinate of the rectangle")],
        width: Annotated[float, Field(description="Width of the rectangle")],
        height: Annotated[float, Field(description="Height of the rectangle")],
        name: ShapeName = None,
        parent_id: ParentId = None,
        fill_color: FillColor = None,
        stroke_color: StrokeColor = None,
        font_color: FontColor = None,
        font_size: FontSize = None,
        corners: Corners = None,
        text: Annotated[Optional[str], Field(description="Text inside the rectangle")] = None,
        horz_align: HorzAlign = None,
        vert_align: VertAlign = None,
    ) -> str:
        """Create a rectangle in Frame0. Use rectangles for containers, buttons and input fields."""
        return await self._create_shape("create_rectangle", "Rectangle", parent_id, {
            "name": name, "left": left, "top": top, "width": width, "height": height,
            "fillColor": fill_color, "strokeColor": stroke_color, "fontColor": font_color,
            "fontSize": font_size, "corners": corners, "text": text,
            "horzAlign": horz_align, "vertAlign": vert_align,
        })

    async def create_ellipse(
        self,
        left: Annotated[float, Field(description="Left coordinate of the ellipse")],
        top: Annotated[float, Field(description="Top coordinate of the ellipse")],
        width: Annotated[float, Field(description="Width of the ellipse")],
        height: Annotated[float, Field(description="Height of the ellipse")],
        name: ShapeName = None,
        parent_id: ParentId = None,
        fill_color: FillColor = None,
        stroke_color: StrokeColor = None,
    ) -> str:
        """Create an ellipse in Frame0."""
        return await self._create_shape("create_ellipse", "Ellipse", parent_id, {
            "name": name, "left": left, "top": top, "width": width, "height": height,
            "fillColor": fill_color, "strokeColor": stroke_color,
        })

    async def create_text(
        self,
        left: Annotated[float, Field(description="Left coordinate of the text")],
        top: Annotated[float, Field(description="Top coordinate of the text")],
        text: Annotated[str, Field(description="Text to display")],
        name: ShapeName = None,
        parent_id: ParentId = None,
        font_color: FontColor = None,
        font_size: FontSize = None,
    ) -> str:
        """Create a text in Frame0.

        Text can be used to create labels, links, descriptions, paragraph, headings, etc.
        """
        if not isinstance(text, str) or not text:
            return _invalid("create_text", "'text' must be a non-empty string")
        return await self._create_shape("create_text", "Text", parent_id, {
            "name": name, "left": left, "top": top, "text": text,
            "fontColor": font_color, "fontSize": font_size,
        })

    async def create_line(
        self,
        points: Annotated[List[Point], Field(description="Points of the line, at least two")],
        name: ShapeName = None,
        parent_id: ParentId = None,
        stroke_color: StrokeColor = None,
    ) -> str:
        """Create a line (or polyline) through the given points in Frame0."""
        if len(points) < 2:
            return _invalid("create_line", "A line needs at least two points")
        path = [[p.x, p.y] if isinstance(p, Point) else [p["x"], p["y"]] for p in points]
        return await self._create_shape("create_line", "Line", parent_id, {
            "name": name, "path": path, "strokeColor": stroke_color,
        })

    async def create_icon(
        self,
        icon_name: Annotated[str, Field(description="Icon name, as listed by get_available_icons")],
        left: Annotated[float, Field(description="Left coordinate of the icon")],
        top: Annotated[float, Field(description="Top coordinate of the icon")],
        size: Annotated[Literal["small", "medium", "large", "extra-large"], Field(description="Icon size")] = "medium",
        parent_id: ParentId = None,
        stroke_color: StrokeColor = None,
    ) -> str:
        """Create an icon shape in Frame0."""
        try:
            stroke = convert_color(stroke_color)
        except ValueError as e:
            return _invalid("create_icon", str(e))
        params = _compact({
            "iconName": icon_name,
            "parentId": parent_id,
            "shapeProps": _compact({"left": left, "top": top, "size": size, "strokeColor": stroke}),
        })
        logger.info(f"✨ create_icon: {icon_name}")
        return await self._run("create_icon", "shape:create-icon", params, filter_shape)

    async def get_available_icons(self) -> str:
        """Get the names of the icons available in Frame0."""
        return await self._run("get_available_icons", "icon:get-available-icons", {})

    async def get_shape(
        self,
        shape_id: Annotated[str, Field(description="ID of the shape")],
    ) -> str:
        """Get the properties of a shape in Frame0."""
        return await self._run("get_shape", "shape:get-shape", {"shapeId": shape_id}, filter_shape)

    async def update_shape(
        self,
        shape_id: Annotated[str, Field(description="ID of the shape to update")],
        name: ShapeName = None,
        left: Annotated[Optional[float], Field(description="Left coordinate of the shape")] = None,
        top: Annotated[Optional[float], Field(description="Top coordinate of the shape")] = None,
        width: Annotated[Optional[float], Field(description="Width of the shape")] = None,
        height: Annotated[Optional[float], Field(description="Height of the shape")] = None,
        fill_color: FillColor = None,
        stroke_color: StrokeColor = None,
        font_color: FontColor = None,
        font_size: FontSize = None,
        corners: Corners = None,
        text: Annotated[Optional[str], Field(description="Text inside the shape")] = None,
        horz_align: HorzAlign = None,
        vert_align: VertAlign = None,
    ) -> str:
        """Update properties of a shape in Frame0. Only the given properties change."""
        try:
            props = _compact({
                "name": name, "left": left, "top": top, "width": width, "height": height,
                "fillColor": convert_color(fill_color),
                "strokeColor": convert_color(stroke_color),
                "fontColor": convert_color(font_color),
                "fontSize": font_size, "corners": corners, "text": text,
                "horzAlign": horz_align, "vertAlign": vert_align,
            })
        except ValueError as e:
            return _invalid("update_shape", str(e))
        if corners is not None and len(corners) != 4:
            return _invalid("update_shape", "corners must be an array of 4 numbers")
        if not props:
            return _invalid("update_shape", "No properties to update")

        logger.info(f"✏️ update_shape: {shape_id} keys={sorted(props)}")
        return await self._run("update_shape", "shape:update-shape", {"shapeId": shape_id, "shapeProps": props},
                               filter_shape)

    async def duplicate_shape(
        self,
        shape_id: Annotated[str, Field(description="ID of the shape to duplicate")],
        dx: Annotated[float, Field(description="Horizontal offset of the copy")] = 0,
        dy: Annotated[float, Field(description="Vertical offset of the copy")] = 0,
    ) -> str:
        """Duplicate a shape in Frame0."""
        return await self._run("duplicate_shape", "shape:duplicate", {"shapeId": shape_id, "dx": dx, "dy": dy},
                               filter_shape)

    async def delete_shape(
        self,
        shape_id: Annotated[str, Field(description="ID of the shape to delete")],
    ) -> str:
        """Delete a shape in Frame0."""
        logger.info(f"🗑️ delete_shape: {shape_id}")
        return await self._run("delete_shape", "edit:delete", {"shapeIdArray": [shape_id]})

    async def move_shape(
        self,
        shape_id: Annotated[str, Field(description="ID of the shape to move")],
        dx: Annotated[float, Field(description="Distance to move along the x axis")],
        dy: Annotated[float, Field(description="Distance to move along the y axis")],
    ) -> str:
        """Move a shape by a relative distance in Frame0."""
        logger.info(f"📍 move_shape: {shape_id} by ({dx}, {dy})")
        return await self._run("move_shape", "shape:move", {"shapeId": shape_id, "dx": dx, "dy": dy})

    # === Pages ===

    async def add_page(
        self,
        name: Annotated[str, Field(description="Name of the new page")],
    ) -> str:
        """Add a new page in Frame0. The new page becomes the current page."""
        return await self._run("add_page", "page:add", {"pageProps": {"name": name}}, filter_page)

    async def update_page(
        self,
        page_id: Annotated[str, Field(description="ID of the page")],
        name: Annotated[str, Field(description="New name of the page")],
    ) -> str:
        """Rename a page in Frame0."""
        return await self._run("update_page", "page:update", {"pageId": page_id, "pageProps": {"name": name}},
                               filter_page)

    async def delete_page(
        self,
        page_id: Annotated[str, Field(description="ID of the page to delete")],
    ) -> str:
        """Delete a page in Frame0."""
        logger.info(f"🗑️ delete_page: {page_id}")
        return await self._run("delete_page", "page:delete", {"pageId": page_id})

    async def get_current_page_id(self) -> str:
        """Get the ID of the current page in Frame0."""
        return await self._run("get_current_page_id", "page:get-current-page", {})

    async def set_current_page(
        self,
        page_id: Annotated[str, Field(description="ID of the page to show")],
    ) -> str:
        """Switch the current page in Frame0."""
        return await self._run("set_current_page", "page:set-current-page", {"pageId": page_id})

    async def get_page(
        self,
        page_id: Annotated[Optional[str], Field(description="ID of the page. Defaults to the current page")] = None,
        export_shapes: Annotated[bool, Field(description="Include the shapes of the page")] = True,
    ) -> str:
        """Get a page, and optionally its shapes, in Frame0."""
        params = _compact({"pageId": page_id, "exportShapes": export_shapes})
        return await self._run("get_page", "page:get", params, filter_page)

    async def get_all_pages(self) -> str:
        """Get the ID and name of every page in the Frame0 document."""
        return await self._run("get_all_pages", "doc:get-all-pages", {}, filter_page_list)

    def tool_functions(self) -> List[Callable]:
        return [
            self.create_frame,
            self.create_rectangle,
            self.create_ellipse,
            self.create_text,
            self.create_line,
            self.create_icon,
            self.get_available_icons,
            self.get_shape,
            self.update_shape,
            self.duplicate_shape,
            self.delete_shape,
            self.move_shape,
            self.add_page,
            self.update_page,
            self.delete_page,
            self.get_current_page_id,
            self.set_current_page,
            self.get_page,
            self.get_all_pages,
        ]


def design_screen(screen: str) -> str:
    """Best practices for designing a screen with Frame0."""
    return DESIGN_SCREEN_PROMPT.format(screen=screen)


def create_server(communicator) -> FastMCP:
    """Build the MCP server exposing the Frame0 tools over the given communicator."""
    mcp = FastMCP("frame0-mcp-server", instructions=f"{SERVER_INSTRUCTIONS}\n\n{FRAME_SIZES_PROMPT}")
    tools = Frame0Tools(communicator)
    for fn in tools.tool_functions():
        mcp.tool()(fn)
    mcp.prompt(name="design_screen")(design_screen)
    logger.info(f"🧰 Registered {len(tools.tool_functions())} Frame0 tools")
    return mcp
