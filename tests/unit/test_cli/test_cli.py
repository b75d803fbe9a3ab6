"""Tests for the command-line interface."""

from __future__ import annotations

import io
from pathlib import Path

import pytest

from dhtshell.cli import apply_args, main, parse_args, serve
from dhtshell.config.settings import Settings
from dhtshell.shell.errors import AccessListError


class TestParseArgs:
    def test_defaults(self) -> None:
        args = parse_args([])
        assert args.port is None
        assert args.acl is None
        assert args.disable_stdin is False
        assert args.upnp is False
        assert args.contact is None

    def test_short_flags(self) -> None:
        args = parse_args(["-p", "4000", "-A", "hosts.acl", "-n", "-u", "seed.example.org:3997"])
        assert args.port == 4000
        assert args.acl == Path("hosts.acl")
        assert args.disable_stdin is True
        assert args.upnp is True
        assert args.contact == "seed.example.org:3997"

    def test_long_flags(self) -> None:
        args = parse_args(["--port", "-1", "--disablestdin", "--http-port", "9000"])
        assert args.port == -1
        assert args.disable_stdin is True
        assert args.http_port == 9000


class TestApplyArgs:
    def test_flags_override_settings(self) -> None:
        settings = apply_args(Settings(), parse_args(["-p", "4000", "-n", "-u", "-v", "--http-port", "9000"]))
        assert settings.shell.port == 4000
        assert settings.shell.disable_stdin is True
        assert settings.backend.upnp is True
        assert settings.logging.level == "DEBUG"
        assert settings.gateway.enabled is True
        assert settings.gateway.port == 9000

    def test_negative_port_disables_remote(self) -> None:
        settings = apply_args(Settings(), parse_args(["-p", "-5"]))
        assert settings.shell.port == -1

    def test_unset_flags_keep_settings(self) -> None:
        settings = Settings()
        settings.shell.port = 4000
        apply_args(settings, parse_args([]))
        assert settings.shell.port == 4000
        assert settings.gateway.enabled is False


class TestServe:
    @pytest.mark.asyncio
    async def test_console_halt(self) -> None:
        settings = Settings()
        settings.backend.node_id = "cli-node"
        stdout = io.StringIO()
        await serve(settings, stdin=io.StringIO("status\nhalt\nstatus\n"), stdout=stdout)
        output = stdout.getvalue()
        assert output.startswith("Ready.\r\n")
        assert "node id: cli-node\r\n" in output
        assert output.count("node id:") == 1
        assert "halting\r\n" in output

    @pytest.mark.asyncio
    async def test_console_eof_ends_without_remote_port(self) -> None:
        settings = Settings()
        stdout = io.StringIO()
        await serve(settings, stdin=io.StringIO("bogus\n"), stdout=stdout)
        assert "No such command: bogus\r\n" in stdout.getvalue()

    @pytest.mark.asyncio
    async def test_contact_is_joined(self) -> None:
        settings = Settings()
        stdout = io.StringIO()
        await serve(settings, "10.1.2.3:4000", stdin=io.StringIO("status\n"), stdout=stdout)
        assert "contacts: 10.1.2.3:4000\r\n" in stdout.getvalue()

    @pytest.mark.asyncio
    async def test_missing_access_list(self, tmp_path: Path) -> None:
        settings = Settings()
        settings.shell.acl = tmp_path / "missing.acl"
        with pytest.raises(AccessListError):
            await serve(settings, stdin=io.StringIO(""), stdout=io.StringIO())


class TestMain:
    def test_invalid_config_exits(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        path = tmp_path / "bad.yaml"
        path.write_text("- not\n- a mapping\n")
        with pytest.raises(SystemExit) as exc:
            main(["-c", str(path)])
        assert exc.value.code == 1
        assert "invalid configuration" in capsys.readouterr().err

    def test_missing_access_list_exits(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        with pytest.raises(SystemExit) as exc:
            main(["-c", str(tmp_path / "none.yaml"), "-n", "-A", str(tmp_path / "missing.acl")])
        assert exc.value.code == 1
        assert "cannot read access list" in capsys.readouterr().err
