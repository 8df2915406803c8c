import logging

import pytest

from dapshim.platforms import AppPlatform, ExternalPlatform, RunOptions
from dapshim.remote import RemoteControlError

from session_stubs import StubRemoteControl


def _options(root="/proj"):
    return RunOptions(project_root=root, platform="ios")


def test_external_platform_reports_connection(caplog):
    platform = ExternalPlatform(_options(), remote_control=StubRemoteControl())
    with caplog.at_level(logging.INFO, logger="dapshim.platforms"):
        platform.run_app()
        platform.enable_debugging_mode()
    messages = [record.getMessage() for record in caplog.records]
    assert "Connected to running packager. You can now open your app in the simulator." in messages
    assert "Debugger ready. Enable remote debugging in app." in messages
    assert platform.project_path == "/proj"


def test_external_platform_asks_helper_for_listener_port(caplog):
    platform = ExternalPlatform(_options(), remote_control=StubRemoteControl(port=8088))
    with caplog.at_level(logging.INFO, logger="dapshim.platforms"):
        assert platform.start_external_process_and_get_port() == 8088
    assert "Attaching to running packager at port: 8088" in caplog.text


def test_external_platform_builds_client_for_project(remote_dir):
    platform = ExternalPlatform(_options(str(remote_dir / "app")))
    assert platform.remote_control.transport.config.path.parent == remote_dir


def test_external_platform_needs_project_root():
    with pytest.raises(RemoteControlError):
        ExternalPlatform(_options(""))


def test_base_platform_requires_overrides():
    platform = AppPlatform(_options())
    with pytest.raises(NotImplementedError):
        platform.run_app()
    with pytest.raises(NotImplementedError):
        platform.start_external_process_and_get_port()
