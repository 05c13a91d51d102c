"""Built-in tool set of the desktop companion."""

from __future__ import annotations

from daemonAgent.models.enums import RiskTier
from daemonAgent.tools.catalog import ParameterSpec, ToolCatalog, ToolDescriptor

_WINDOW_POSITIONS = (
    "left_half",
    "right_half",
    "top_half",
    "bottom_half",
    "full_screen",
    "center",
    "top_left",
    "top_right",
    "bottom_left",
    "bottom_right",
)

_SYSTEM_INFO_TARGETS = (
    "ip_address",
    "disk_space",
    "cpu_usage",
    "battery",
    "battery_time",
    "memory",
    "hostname",
    "os_version",
    "uptime",
)


def _p(name, type_, description, required=True, enum=()):
    return ParameterSpec(name=name, type=type_, description=description, required=required, enum_values=tuple(enum))


BUILTIN_TOOLS = (
    # --- safe ---
    ToolDescriptor(
        name="app_open",
        title="Open App",
        description="Open an application or URL. Use for launching apps like Safari or opening websites.",
        risk_tier=RiskTier.SAFE,
        capability="apps",
        parameters=(_p("target", "string", "App name (e.g. 'Safari') or URL (e.g. 'https://example.com')"),),
    ),
    ToolDescriptor(
        name="file_search",
        title="Search Files",
        description="Search for files on the computer using Spotlight.",
        risk_tier=RiskTier.SAFE,
        capability="files",
        parameters=(
            _p("query", "string", "Search query (filename or content keywords)"),
            _p("kind", "enum", "File type filter", required=False, enum=("pdf", "image", "video", "audio", "text", "folder", "app")),
            _p("date", "string", "Relative date filter such as 'today' or 'last week'", required=False),
        ),
    ),
    ToolDescriptor(
        name="window_manage",
        title="Manage Window",
        description="Resize or move the frontmost window (or the named app's window) to a screen position.",
        risk_tier=RiskTier.SAFE,
        capability="windows",
        parameters=(
            _p("target", "string", "App whose window to move; frontmost window if omitted", required=False),
            _p("position", "enum", "Target position", enum=_WINDOW_POSITIONS),
        ),
    ),
    ToolDescriptor(
        name="system_info",
        title="System Info",
        description="Read system information such as IP address, disk space, battery or uptime.",
        risk_tier=RiskTier.SAFE,
        capability="system",
        parameters=(_p("target", "enum", "Which piece of information to read", enum=_SYSTEM_INFO_TARGETS),),
    ),
    ToolDescriptor(
        name="get_ui_state",
        title="Read Screen",
        description=(
            "Read the accessibility tree of the frontmost app (or the named app). Returns elements with "
            "stable refs usable with ax_action. Call this before interacting with an app's UI."
        ),
        risk_tier=RiskTier.SAFE,
        capability="ui",
        required_permissions=("accessibility",),
        ui_interaction=True,
        parameters=(_p("app", "string", "App to inspect; frontmost app if omitted", required=False),),
    ),
    ToolDescriptor(
        name="ax_find",
        title="Find UI Element",
        description="Search the frontmost app's accessibility tree for elements matching a role, title or value.",
        risk_tier=RiskTier.SAFE,
        capability="ui",
        required_permissions=("accessibility",),
        parameters=(
            _p("role", "string", "Accessibility role, e.g. AXButton", required=False),
            _p("title", "string", "Title or label substring", required=False),
            _p("value", "string", "Value substring", required=False),
        ),
    ),
    # --- caution ---
    ToolDescriptor(
        name="screen_capture",
        title="Screenshot",
        description="Capture the screen, a window or a region and describe it with the vision model.",
        risk_tier=RiskTier.CAUTION,
        capability="screen",
        required_permissions=("screenRecording",),
        parameters=(
            _p("mode", "enum", "What to capture", required=False, enum=("full", "window", "region")),
            _p("app", "string", "App whose window to capture (mode=window)", required=False),
            _p("x", "int", "Region left edge in pixels", required=False),
            _p("y", "int", "Region top edge in pixels", required=False),
            _p("width", "int", "Region width in pixels", required=False),
            _p("height", "int", "Region height in pixels", required=False),
            _p("prompt", "string", "What to look for in the capture", required=False),
        ),
    ),
    ToolDescriptor(
        name="ax_action",
        title="UI Action",
        description="Perform a native accessibility action on an element ref returned by get_ui_state.",
        risk_tier=RiskTier.CAUTION,
        capability="ui",
        required_permissions=("accessibility",),
        ui_interaction=True,
        parameters=(
            _p("ref", "string", "Element ref, e.g. '@e12'"),
            _p("action", "enum", "Action to perform", enum=("press", "set_value", "focus", "raise", "show_menu")),
            _p("value", "string", "New value for set_value", required=False),
        ),
    ),
    ToolDescriptor(
        name="computer_action",
        title="Computer Action",
        description=(
            "Perform a described UI action, e.g. \"click the Compose button\" or \"type 'hello' in the search "
            "field\". Tries accessibility first, then shortcuts, then screenshot-based clicking."
        ),
        risk_tier=RiskTier.CAUTION,
        capability="ui",
        required_permissions=("accessibility", "screenRecording"),
        ui_interaction=True,
        parameters=(
            _p("action", "string", "Natural-language description of the action"),
            _p("app", "string", "App the action targets; current target app if omitted", required=False),
        ),
    ),
    ToolDescriptor(
        name="mouse_click",
        title="Mouse Click",
        description="Click at absolute screen coordinates.",
        risk_tier=RiskTier.CAUTION,
        capability="ui",
        required_permissions=("accessibility",),
        foreground_locked=True,
        parameters=(
            _p("x", "int", "X coordinate in pixels"),
            _p("y", "int", "Y coordinate in pixels"),
            _p("clickType", "enum", "Click type", required=False, enum=("single", "double", "right")),
        ),
    ),
    ToolDescriptor(
        name="keyboard_type",
        title="Type Text",
        description="Type text into the focused element of the frontmost app.",
        risk_tier=RiskTier.CAUTION,
        capability="ui",
        required_permissions=("accessibility",),
        foreground_locked=True,
        parameters=(_p("text", "string", "Text to type"),),
    ),
    ToolDescriptor(
        name="keyboard_shortcut",
        title="Keyboard Shortcut",
        description="Press a keyboard shortcut in the frontmost app, e.g. 'cmd+c'.",
        risk_tier=RiskTier.CAUTION,
        capability="ui",
        required_permissions=("accessibility",),
        foreground_locked=True,
        parameters=(_p("shortcut", "string", "Shortcut such as 'cmd+shift+t'"),),
    ),
    ToolDescriptor(
        name="file_move",
        title="Move File",
        description="Move or rename a file.",
        risk_tier=RiskTier.CAUTION,
        capability="files",
        path_arguments=("source", "destination"),
        parameters=(
            _p("source", "string", "Path of the file to move"),
            _p("destination", "string", "Destination path"),
        ),
    ),
    ToolDescriptor(
        name="file_write",
        title="Write File",
        description="Write text content to a file, creating it if needed.",
        risk_tier=RiskTier.CAUTION,
        capability="files",
        path_arguments=("path",),
        parameters=(
            _p("path", "string", "Path of the file to write"),
            _p("content", "string", "Text content"),
            _p("append", "bool", "Append instead of overwrite", required=False),
        ),
    ),
    # --- dangerous ---
    ToolDescriptor(
        name="file_delete",
        title="Delete File",
        description="Delete a file. This cannot be undone.",
        risk_tier=RiskTier.DANGEROUS,
        capability="files",
        path_arguments=("path",),
        parameters=(_p("path", "string", "Path of the file to delete"),),
    ),
    ToolDescriptor(
        name="process_kill",
        title="Quit Process",
        description="Force-quit a running application or process.",
        risk_tier=RiskTier.DANGEROUS,
        capability="processes",
        parameters=(_p("target", "string", "App name or process id"),),
    ),
)


def build_default_catalog() -> ToolCatalog:
    return ToolCatalog(BUILTIN_TOOLS)
