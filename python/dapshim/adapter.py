"""Command line entry point: wrap a debug session type and serve DAP on stdio."""

from __future__ import annotations

import argparse
import importlib
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional

from . import __version__
from .interceptor import SessionInterceptor
from .protocol import DAPProtocol, ProcessDebugSession, SessionDriver
from .telemetry import ReassignableTelemetryReporter

SESSION_FACTORY_ENV = "DAPSHIM_SESSION_FACTORY"
VERSION_ENV = "DAPSHIM_EXTENSION_VERSION"
LOG_LEVEL_ENV = "DAPSHIM_LOG_LEVEL"

LOGGER = logging.getLogger("dapshim.adapter")


def resolve_session_type(factory_path: Optional[str] = None) -> type:
    """Session type named by ``module:attr`` (or the env var); defaults to ProcessDebugSession."""
    if factory_path is None:
        factory_path = os.environ.get(SESSION_FACTORY_ENV)
    if not factory_path:
        return ProcessDebugSession
    module_name, _, attr = factory_path.partition(":")
    if not module_name or not attr:
        raise RuntimeError(f"Invalid {SESSION_FACTORY_ENV} value: {factory_path}")
    module = importlib.import_module(module_name)
    session_type = getattr(module, attr)
    if not isinstance(session_type, type):
        raise RuntimeError(f"{factory_path} is not a class")
    return session_type


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="dapshim debug adapter", add_help=False)
    parser.add_argument("--log-file")
    parser.add_argument("--log-level", default=os.environ.get(LOG_LEVEL_ENV, "INFO"))
    parser.add_argument("--app-name", default="dapshim")
    parser.add_argument("--adapter-version", default=os.environ.get(VERSION_ENV, "unknown"))
    parser.add_argument("--session-factory", help=f"module:attr of the session type (env {SESSION_FACTORY_ENV})")
    parser.add_argument("--stop-monitoring-timeout", type=float, default=5.0)
    parser.add_argument("--control-host", default="127.0.0.1")
    return parser


def build_driver(
    protocol: DAPProtocol,
    *,
    app_name: str,
    version: str,
    session_type: type,
    stop_monitoring_timeout: Optional[float] = 5.0,
    control_host: str = "127.0.0.1",
) -> SessionDriver:
    telemetry = ReassignableTelemetryReporter()
    interceptor = SessionInterceptor(
        app_name,
        version,
        telemetry,
        session_type,
        stop_monitoring_timeout=stop_monitoring_timeout,
        control_host=control_host,
    )
    operations = interceptor.install_interceptors()
    session = session_type(protocol)
    return SessionDriver(session, operations)


def main(argv: Optional[List[str]] = None) -> int:
    args, _ = build_arg_parser().parse_known_args(argv)
    if args.log_file:
        Path(args.log_file).parent.mkdir(parents=True, exist_ok=True)
    # stdout carries DAP frames; logs go to the file or stderr.
    logging.basicConfig(
        filename=args.log_file,
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="[%(asctime)s] %(levelname)s: %(message)s",
        force=True,
    )
    version = args.adapter_version
    if not version or version == "unknown":
        version = __version__
    session_type = resolve_session_type(args.session_factory)
    print(f"[dapshim] wrapping {session_type.__module__}.{session_type.__name__}", file=sys.stderr, flush=True)
    protocol = DAPProtocol(sys.stdin.buffer, sys.stdout.buffer)
    driver = build_driver(
        protocol,
        app_name=args.app_name,
        version=version,
        session_type=session_type,
        stop_monitoring_timeout=args.stop_monitoring_timeout,
        control_host=args.control_host,
    )
    LOGGER.info("dapshim adapter starting (pid=%s, version=%s)", os.getpid(), version)
    try:
        driver.serve()
        LOGGER.info("dapshim adapter exiting normally")
        return 0
    except Exception:
        LOGGER.exception("dapshim adapter crashed")
        raise
