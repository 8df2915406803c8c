"""Launch argument whitelist for the downstream process."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, List, Mapping, Optional, Sequence, Union

from .platforms import DEFAULT_IOS_PROJECT_RELATIVE_PATH

DEFAULT_CONTROL_PORT = 9090
DEFAULT_TARGET = "simulator"

# launch.json key first, then the accepted alias.
CONTROL_PORT_KEYS = ("internalDebuggerPort", "internalControlPort")
RELATIVE_PROJECT_PATH_KEYS = ("iosRelativeProjectPath", "relativeProjectPath")
EXTRA_LOG_ARGUMENT_KEYS = ("logCatArguments", "extraLogArguments")

ExtraLogArguments = Union[str, Sequence[str]]


def _first_present(args: Mapping[str, Any], keys: Sequence[str]) -> Any:
    for key in keys:
        value = args.get(key)
        if value is not None:
            return value
    return None


@dataclass
class LaunchArguments:
    """The only launch fields that may influence the downstream process."""

    program: Optional[str] = None
    platform: Optional[str] = None
    internal_control_port: Any = None
    relative_project_path: Optional[str] = None
    target: Optional[str] = None
    extra_log_arguments: Optional[ExtraLogArguments] = None

    @classmethod
    def from_mapping(cls, args: Mapping[str, Any]) -> "LaunchArguments":
        return cls(
            program=args.get("program"),
            platform=args.get("platform"),
            internal_control_port=_first_present(args, CONTROL_PORT_KEYS),
            relative_project_path=_first_present(args, RELATIVE_PROJECT_PATH_KEYS),
            target=args.get("target"),
            extra_log_arguments=_first_present(args, EXTRA_LOG_ARGUMENT_KEYS),
        )


def parse_control_port(args: Mapping[str, Any]) -> int:
    """Control port from the launch arguments, or DEFAULT_CONTROL_PORT."""
    value = LaunchArguments.from_mapping(args).internal_control_port
    port: Optional[int] = None
    if isinstance(value, bool):
        port = None
    elif isinstance(value, int):
        port = value
    elif isinstance(value, str):
        text = value.strip()
        if text.isascii() and text.isdigit():
            port = int(text, 10)
    if port is None or not 0 < port <= 0xFFFF:
        return DEFAULT_CONTROL_PORT
    return port


def join_log_arguments(value: ExtraLogArguments) -> str:
    if isinstance(value, (list, tuple)):
        return " ".join(str(item) for item in value)
    return str(value)


def sanitize_launch_arguments(args: Mapping[str, Any], port: int) -> List[str]:
    """Build the positional vector handed to the downstream process.

    The layout is ``[platform, port, relativeProjectPath, target]`` plus an
    optional joined extra-log argument.  Nothing else from ``args`` is read.
    """
    launch = LaunchArguments.from_mapping(args)
    relative_path = launch.relative_project_path
    if relative_path is None:
        relative_path = DEFAULT_IOS_PROJECT_RELATIVE_PATH
    vector = [
        "" if launch.platform is None else str(launch.platform),
        str(port),
        str(relative_path),
        str(launch.target or DEFAULT_TARGET),
    ]
    if launch.extra_log_arguments is not None:
        vector.append(join_log_arguments(launch.extra_log_arguments))
    return vector


def project_root_for(program: Optional[str]) -> str:
    """Project root is the grandparent directory of the launched program."""
    if not program:
        return os.getcwd()
    return os.path.normpath(os.path.abspath(os.path.join(str(program), os.pardir, os.pardir)))
