"""
dapshim - augments a third-party debug adapter without touching its source.

Modules:

    protocol.py        → DAP framing, events, base session, request driver
    arguments.py       → launch argument whitelist for the downstream process
    control_server.py  → local HTTP endpoint that triggers breakpoint refresh
    remote.py          → RPC client for the packager/log-monitor helper
    telemetry.py       → reassignable telemetry handle and reporters
    platforms.py       → app platform capabilities (external packager)
    interceptor.py     → launch/attach/disconnect wrappers
    adapter.py         → command line entry point
"""

from .arguments import (  # noqa: F401
    DEFAULT_CONTROL_PORT,
    LaunchArguments,
    parse_control_port,
    project_root_for,
    sanitize_launch_arguments,
)
from .control_server import REFRESH_BREAKPOINTS_PATH, ReinitializationServer  # noqa: F401
from .interceptor import InstallationError, SessionInterceptor, flush_source_maps  # noqa: F401
from .platforms import DEFAULT_IOS_PROJECT_RELATIVE_PATH, AppPlatform, ExternalPlatform, RunOptions  # noqa: F401
from .protocol import (  # noqa: F401
    AdapterCommandError,
    DAPProtocol,
    DebugSession,
    DirectOperations,
    Event,
    InitializedEvent,
    OutputEvent,
    ProcessDebugSession,
    SessionDriver,
    SourceMapCache,
    TelemetryEvent,
    TerminatedEvent,
)
from .remote import RemoteControlClient, RemoteControlError, endpoint_for_project  # noqa: F401
from .telemetry import (  # noqa: F401
    NullTelemetryReporter,
    ReassignableTelemetryReporter,
    SessionTelemetryReporter,
    TelemetryReporter,
)

__all__ = [
    "DEFAULT_CONTROL_PORT",
    "DEFAULT_IOS_PROJECT_RELATIVE_PATH",
    "REFRESH_BREAKPOINTS_PATH",
    "AdapterCommandError",
    "AppPlatform",
    "DAPProtocol",
    "DebugSession",
    "DirectOperations",
    "Event",
    "ExternalPlatform",
    "InitializedEvent",
    "InstallationError",
    "LaunchArguments",
    "NullTelemetryReporter",
    "OutputEvent",
    "ProcessDebugSession",
    "ReassignableTelemetryReporter",
    "ReinitializationServer",
    "RemoteControlClient",
    "RemoteControlError",
    "RunOptions",
    "SessionDriver",
    "SessionInterceptor",
    "SessionTelemetryReporter",
    "SourceMapCache",
    "TelemetryEvent",
    "TelemetryReporter",
    "TerminatedEvent",
    "endpoint_for_project",
    "flush_source_maps",
    "parse_control_port",
    "project_root_for",
    "sanitize_launch_arguments",
]

__version__ = "0.1.0"
