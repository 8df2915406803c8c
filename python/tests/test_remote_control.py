import os

import pytest

from dapshim.remote import RemoteControlClient, RemoteControlError, endpoint_for_project

from session_stubs import DummyRemoteControlServer


@pytest.fixture
def helper(remote_dir, tmp_path):
    root = str(tmp_path / "app")
    server = DummyRemoteControlServer(
        endpoint_for_project(root),
        {
            "stopMonitoringLogStream": lambda: None,
            "getListenerPort": lambda: "8081",
        },
    )
    try:
        yield root, server
    finally:
        server.stop()


def test_endpoint_is_stable_per_project_root(remote_dir):
    first = endpoint_for_project("/proj")
    assert first == endpoint_for_project("/proj/")
    assert first == endpoint_for_project("/proj/ios/..")
    assert first != endpoint_for_project("/other")
    assert first.parent == remote_dir
    assert first.name.startswith("dapshim-") and first.suffix == ".sock"


def test_stop_monitoring_resolves(helper):
    root, server = helper
    client = RemoteControlClient.at_project_root(root)
    assert client.stop_monitoring_log_stream().result(timeout=2.0) is None
    (request,) = server.requests
    assert request["method"] == "stopMonitoringLogStream"
    assert request["args"] == []


def test_get_listener_port_returns_int(helper):
    root, _ = helper
    client = RemoteControlClient.at_project_root(root)
    assert client.get_listener_port().result(timeout=2.0) == 8081


def test_helper_error_reply_rejects_future(remote_dir, tmp_path):
    root = str(tmp_path / "app")

    def refuse():
        raise RuntimeError("monitor not running")

    server = DummyRemoteControlServer(endpoint_for_project(root), {"stopMonitoringLogStream": refuse})
    try:
        future = RemoteControlClient.at_project_root(root).stop_monitoring_log_stream()
        with pytest.raises(RemoteControlError, match="monitor not running"):
            future.result(timeout=2.0)
    finally:
        server.stop()


def test_unreachable_helper_names_the_errno(remote_dir, tmp_path):
    future = RemoteControlClient.at_project_root(str(tmp_path / "nobody")).stop_monitoring_log_stream()
    with pytest.raises(RemoteControlError) as excinfo:
        future.result(timeout=2.0)
    assert "ENOENT" in str(excinfo.value)


def test_invalid_listener_port_rejects(remote_dir, tmp_path):
    root = str(tmp_path / "app")
    server = DummyRemoteControlServer(endpoint_for_project(root), {"getListenerPort": lambda: "soon"})
    try:
        with pytest.raises(RemoteControlError, match="invalid listener port"):
            RemoteControlClient.at_project_root(root).get_listener_port().result(timeout=2.0)
    finally:
        server.stop()


@pytest.mark.parametrize("root", [None, ""])
def test_unknown_project_root_fails_synchronously(root):
    with pytest.raises(RemoteControlError):
        RemoteControlClient.at_project_root(root)


def test_remote_dir_fixture_is_used(remote_dir):
    assert os.environ["DAPSHIM_REMOTE_CONTROL_DIR"] == str(remote_dir)
