"""Unit tests for the command line entry point."""

from unittest.mock import AsyncMock

import pytest

from localmesh import cli
from localmesh.components import Target
from localmesh.errors import ManifestError
from localmesh.settings import Settings


class TestParser:
    """Test argument parsing."""

    def test_create_transformation(self):
        args = cli.build_parser().parse_args([
            "create", "transformation",
            "--name", "tr",
            "--target", "sockeye",
            "--source", "a,b",
            "--source", "c",
            "--eventTypes", "x, y",
            "-f", "spec.yaml",
        ])

        assert cli._command_name(args) == "create transformation"
        assert args.sources == ["a", "b", "c"]
        assert args.event_types == ["x", "y"]
        assert args.file == "spec.yaml"

    def test_filters_default_empty(self):
        args = cli.build_parser().parse_args(["create", "transformation", "--name", "tr"])
        assert args.sources == []
        assert args.event_types == []
        assert args.target is None

    def test_start_restart_flag(self):
        assert cli.build_parser().parse_args(["start", "--restart"]).restart is True
        assert cli.build_parser().parse_args(["start"]).restart is False

    def test_command_required(self):
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args([])


class TestRun:
    """Test command execution against a local context."""

    @pytest.mark.asyncio
    async def test_status_prints_table(self, local_context, fake_runtime, capsys):
        local_context.manifest.read()
        local_context.manifest.add(Target("sockeye", "CloudEventsTarget").to_record())
        fake_runtime.add_running("sockeye", 50000)

        await cli.run(cli.build_parser().parse_args(["status"]), local_context)

        out = capsys.readouterr().out
        assert "NAME\tKIND\tSTATE\tURL" in out
        assert "sockeye\tCloudEventsTarget\tready\thttp://host.docker.internal:50000" in out
        assert fake_runtime.opened is True
        assert fake_runtime.closed is True

    @pytest.mark.asyncio
    async def test_create_from_file(self, local_context, tmp_path, capsys):
        spec_file = tmp_path / "tr.yaml"
        spec_file.write_text("data:\n- operation: delete\n  paths:\n  - key: foo\n")

        args = cli.build_parser().parse_args([
            "create", "transformation", "--name", "tr", "-f", str(spec_file),
        ])
        await cli.run(args, local_context)

        assert "transformation tr is ready" in capsys.readouterr().out
        local_context.manifest.read()
        assert local_context.manifest.get("Transformation", "tr") is not None


class TestMain:
    """Test error reporting and exit status."""

    def test_error_exits_with_message(self, monkeypatch, tmp_path, capsys):
        monkeypatch.setenv("LOCALMESH_CONFIG_BASE", str(tmp_path))
        monkeypatch.setattr(cli, "get_settings", lambda: Settings(_env_file=None))
        monkeypatch.setattr(cli, "configure_logging", lambda level, json_output=False: None)
        monkeypatch.setattr(
            cli, "run", AsyncMock(side_effect=ManifestError("component 'nope' not found in manifest"))
        )

        with pytest.raises(SystemExit) as exc_info:
            cli.main(["delete", "nope"])

        assert exc_info.value.code == 1
        assert capsys.readouterr().err.strip().endswith(
            "error: delete: component 'nope' not found in manifest"
        )
