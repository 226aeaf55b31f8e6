PALETTE_COLORS = (
    "gray", "mauve", "slate", "sage", "olive", "sand", "tomato", "red", "ruby", "crimson",
    "pink", "plum", "purple", "violet", "iris", "indigo", "blue", "cyan", "teal", "jade",
    "green", "grass", "bronze", "gold", "brown", "orange", "amber", "yellow", "lime", "mint", "sky",
)

AVAILABLE_COLORS_PROMPT = (
    "The available colors are as follows: $background, $foreground, and the format $<color><level>. "
    f"<color> is one of the following: {', '.join(PALETTE_COLORS)}. "
    "<level> is a value between 1 and 12. (1 is the lightest, and 12 is the darkest). "
    "Hex values such as #ff0000 and 'transparent' are also accepted."
)

FRAME_SIZES_PROMPT = """Typical size of frames:
- Phone: 320 x 690
- Tablet: 520 x 790
- Desktop: 800 x 600
- Browser: 800 x 600
- Watch: 198 x 242
- TV: 960 x 570

When you create a screen, you need to create a frame first.
The frame is the parent of all UI elements in the screen.

The coordinate system of the frame and the shapes inside it are the same.
Just because they are inside doesn't mean they start at [0,0]."""

SERVER_INSTRUCTIONS = (
    "Tools for drawing wireframes in the running Frame0 application. "
    "Create a frame first, then place shapes inside it using the frame ID as parentId. "
    "Coordinates are absolute page coordinates. "
    "Every mutating tool is sent at most once: if a tool reports an unknown outcome "
    "(timeout or lost connection), inspect the page with get_page before trying again."
)

DESIGN_SCREEN_PROMPT = """When design a screen with Frame0, follow these best practices:

1. Create a frame:
   - First use create_frame()
   - Set the frame type (e.g., Phone, Tablet, Desktop)
   - Set the position (left, top) of the frame
   - Remember the resulting frame's properties (id, position, width, height) for future reference

2. Shape Creation:
   - Use create_rectangle() for containers and input fields
   - Use create_text() for labels, buttons text, and links
   - Use create_icon() for icons; look up names with get_available_icons()
   - Set the position (left, top) and size (width, height) of each shape based on the frame

3. Review:
   - Use get_page() to check the result before making further changes

Screen to design: {screen}
"""
