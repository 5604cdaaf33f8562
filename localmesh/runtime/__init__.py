"""Adapter container runtime: lifecycle table, probe, docker client, orchestrator."""

from localmesh.runtime.docker import DockerCliRuntime, parse_inspect
from localmesh.runtime.lifecycle import ContainerLifecycle
from localmesh.runtime.orchestrator import (
    ContainerOrchestrator,
    LogErrorReporter,
    parse_log_line,
    strip_stream_header,
)
from localmesh.runtime.probe import ReadinessProbe, tcp_connect

__all__ = [
    "ContainerLifecycle",
    "ContainerOrchestrator",
    "DockerCliRuntime",
    "LogErrorReporter",
    "ReadinessProbe",
    "parse_inspect",
    "parse_log_line",
    "strip_stream_header",
    "tcp_connect",
]
