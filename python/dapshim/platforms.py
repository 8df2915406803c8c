"""App platform capabilities consumed by launch flows."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from .remote import RemoteControlClient

DEFAULT_IOS_PROJECT_RELATIVE_PATH = "ios"

LOGGER = logging.getLogger("dapshim.platforms")


@dataclass
class RunOptions:
    project_root: str
    platform: str
    target: str = "simulator"
    extra: Dict[str, Any] = field(default_factory=dict)


class AppPlatform:
    """Capabilities a launch flow expects from a platform."""

    def __init__(self, run_options: RunOptions) -> None:
        self.run_options = run_options

    def run_app(self) -> None:
        raise NotImplementedError("AppPlatform must implement run_app()")

    def enable_debugging_mode(self) -> None:
        raise NotImplementedError("AppPlatform must implement enable_debugging_mode()")

    def start_external_process_and_get_port(self) -> int:
        raise NotImplementedError("AppPlatform must implement start_external_process_and_get_port()")


class ExternalPlatform(AppPlatform):
    """Platform for a packager that somebody else already started."""

    def __init__(
        self,
        run_options: RunOptions,
        *,
        remote_control: Optional[RemoteControlClient] = None,
        timeout: float = 5.0,
    ) -> None:
        super().__init__(run_options)
        if remote_control is None:
            remote_control = RemoteControlClient.at_project_root(run_options.project_root)
        self.project_path = run_options.project_root
        self.remote_control = remote_control
        self.timeout = timeout

    def run_app(self) -> None:
        LOGGER.info("Connected to running packager. You can now open your app in the simulator.")

    def enable_debugging_mode(self) -> None:
        LOGGER.info("Debugger ready. Enable remote debugging in app.")

    def start_external_process_and_get_port(self) -> int:
        port = self.remote_control.get_listener_port().result(timeout=self.timeout)
        LOGGER.info("Attaching to running packager at port: %s", port)
        return port
