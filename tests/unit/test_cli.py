"""
Tests for CLI commands.
"""

import json
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from click.testing import CliRunner

from neo_planner.cli import main
from neo_planner.exceptions import KernelAcquisitionError
from neo_planner.targets import TargetManager

START = "2026-01-12T00:00:00Z"


@pytest.fixture(autouse=True)
def clear_log_level_override(monkeypatch):
    monkeypatch.delenv("NEO_PLANNER_LOG_LEVEL", raising=False)


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def targets_file(tmp_path: Path, opposition_target, hyperbolic_target) -> Path:
    path = tmp_path / "targets.json"
    TargetManager([hyperbolic_target, opposition_target]).save_to_file(str(path))
    return path


def _plan_args(kernel: Path, targets: Path, *extra: str):
    return [
        "--log-level", "ERROR", "plan",
        "--kernel", str(kernel),
        "--targets", str(targets),
        "--lat", "0", "--lon", "0",
        "--start", START,
        *extra,
    ]


class TestMain:
    """Tests for the command group."""

    def test_help(self, runner: CliRunner) -> None:
        result = runner.invoke(main, ["--help"])
        assert result.exit_code == 0
        for command in ("plan", "download-kernel", "kernel-info", "fetch-neos", "sun", "point"):
            assert command in result.output

    def test_plan_help(self, runner: CliRunner) -> None:
        result = runner.invoke(main, ["plan", "--help"])
        assert result.exit_code == 0
        assert "--min-alt" in result.output
        assert "--twilight" in result.output


class TestPlanCommand:
    """Tests for the plan command."""

    def test_text_output(self, runner, planetary_kernel_file: Path, targets_file: Path) -> None:
        result = runner.invoke(main, _plan_args(planetary_kernel_file, targets_file))

        assert result.exit_code == 0, result.output
        assert "=== Visibility plan for Observer" in result.output
        assert "1. Opposition Rock" in result.output
        assert "Best window:" in result.output
        assert "2. Interstellar Visitor" in result.output
        assert "Not observable in this window" in result.output

    def test_json_output_file(
        self, runner, tmp_path: Path, planetary_kernel_file: Path, targets_file: Path
    ) -> None:
        output = tmp_path / "plan.json"
        result = runner.invoke(
            main,
            _plan_args(
                planetary_kernel_file, targets_file,
                "--format", "json", "--output", str(output), "--tz", "America/Los_Angeles",
            ),
        )

        assert result.exit_code == 0, result.output
        data = json.loads(output.read_text())
        assert data["observer"]["time_zone_id"] == "America/Los_Angeles"
        first = data["results"][0]
        assert first["name"] == "Opposition Rock"
        assert first["peak_altitude_deg"] > 80.0
        assert first["best_start_local"].endswith("-08:00")
        assert data["results"][1]["peak_altitude_deg"] is None
        assert '"name": "Opposition Rock"' in result.output

    def test_max_targets_option(self, runner, planetary_kernel_file, targets_file) -> None:
        result = runner.invoke(
            main, _plan_args(planetary_kernel_file, targets_file, "--max-targets", "1")
        )
        assert result.exit_code == 0, result.output
        assert "Interstellar Visitor" in result.output
        assert "Opposition Rock" not in result.output

    def test_config_file_defaults(
        self, runner, tmp_path: Path, planetary_kernel_file, targets_file
    ) -> None:
        config = tmp_path / "settings.yaml"
        config.write_text("planner:\n  max_targets: 1\n")
        result = runner.invoke(
            main, _plan_args(planetary_kernel_file, targets_file, "--config", str(config))
        )
        assert result.exit_code == 0, result.output
        assert "Opposition Rock" not in result.output

    def test_missing_kernel(self, runner, tmp_path: Path, targets_file: Path) -> None:
        result = runner.invoke(main, _plan_args(tmp_path / "missing.bsp", targets_file))
        assert result.exit_code == 1
        assert "Error:" in result.output

    def test_bad_time_zone(self, runner, planetary_kernel_file, targets_file) -> None:
        result = runner.invoke(
            main, _plan_args(planetary_kernel_file, targets_file, "--tz", "Nowhere/Special")
        )
        assert result.exit_code == 1
        assert "Unknown time zone" in result.output

    def test_bad_start(self, runner, planetary_kernel_file, targets_file) -> None:
        args = _plan_args(planetary_kernel_file, targets_file)
        args[args.index(START)] = "yesterday-ish"
        result = runner.invoke(main, args)
        assert result.exit_code == 1

    def test_requires_observer(self, runner, planetary_kernel_file, targets_file) -> None:
        result = runner.invoke(
            main,
            ["plan", "--kernel", str(planetary_kernel_file), "--targets", str(targets_file)],
        )
        assert result.exit_code == 2
        assert "--lat" in result.output


class TestKernelCommands:
    """Tests for download-kernel and kernel-info."""

    def test_kernel_info(self, runner, planetary_kernel_file: Path) -> None:
        result = runner.invoke(main, ["kernel-info", "--kernel", str(planetary_kernel_file)])
        assert result.exit_code == 0, result.output
        assert "Format: LTL-IEEE (ND=2, NI=6)" in result.output
        assert "Segments: 3" in result.output
        assert " 399 wrt    3" in result.output

    def test_kernel_info_bad_file(self, runner, tmp_path: Path) -> None:
        bad = tmp_path / "bad.bsp"
        bad.write_bytes(b"not a kernel" * 100)
        result = runner.invoke(main, ["kernel-info", "--kernel", str(bad)])
        assert result.exit_code == 1
        assert "Not a DAF file" in result.output

    def test_download_kernel(self, runner, tmp_path: Path) -> None:
        with patch("neo_planner.cli.ensure_kernel") as mock_ensure:
            mock_ensure.return_value = tmp_path / "de442s.bsp"
            result = runner.invoke(main, ["download-kernel", "--dir", str(tmp_path / "k")])

        assert result.exit_code == 0, result.output
        assert "Kernel ready:" in result.output
        store = mock_ensure.call_args.args[0]
        assert store.directory == tmp_path / "k"
        assert (tmp_path / "k").is_dir()

    def test_download_kernel_failure(self, runner, tmp_path: Path) -> None:
        with patch("neo_planner.cli.ensure_kernel") as mock_ensure:
            mock_ensure.side_effect = KernelAcquisitionError("Kernel MD5 mismatch")
            result = runner.invoke(main, ["download-kernel", "--dir", str(tmp_path)])

        assert result.exit_code == 1
        assert "Kernel MD5 mismatch" in result.output


class TestFetchNeos:
    """Tests for fetch-neos."""

    def test_fetch(self, runner, tmp_path: Path, opposition_target) -> None:
        output = tmp_path / "neos.json"
        with patch("neo_planner.cli.NeoWsClient") as mock_client_cls:
            client = MagicMock()
            client.fetch_candidates.return_value = [MagicMock(), MagicMock()]
            client.fetch_targets.return_value = [opposition_target]
            mock_client_cls.return_value = client

            result = runner.invoke(main, [
                "fetch-neos", "--start-date", "2026-01-12", "--max", "5",
                "--api-key", "KEY", "--output", str(output),
            ])

        assert result.exit_code == 0, result.output
        assert "Found 2 close approaches between 2026-01-12 and 2026-01-13" in result.output
        assert "Saved 1 targets" in result.output
        mock_client_cls.assert_called_once_with("KEY")
        assert client.fetch_targets.call_args.args[1] == 5
        assert [t.id for t in TargetManager.load_from_file(str(output))] == ["1001"]

    def test_fetch_failure(self, runner, tmp_path: Path) -> None:
        with patch("neo_planner.cli.NeoWsClient") as mock_client_cls:
            from neo_planner.exceptions import CatalogError

            mock_client_cls.return_value.fetch_candidates.side_effect = CatalogError("down")
            result = runner.invoke(main, [
                "fetch-neos", "--api-key", "KEY", "--output", str(tmp_path / "o.json"),
            ])
        assert result.exit_code == 1
        assert "down" in result.output


class TestSkyCommands:
    """Tests for sun and point."""

    def test_sun(self, runner, planetary_kernel_file: Path) -> None:
        result = runner.invoke(main, [
            "sun", "--kernel", str(planetary_kernel_file),
            "--lat", "0", "--lon", "0", "--time", START,
        ])
        assert result.exit_code == 0, result.output
        assert "Sun altitude:" in result.output
        assert "Sky:" in result.output

    def test_point(self, runner, planetary_kernel_file: Path, targets_file: Path) -> None:
        result = runner.invoke(main, [
            "point", "--kernel", str(planetary_kernel_file), "--targets", str(targets_file),
            "--lat", "0", "--lon", "0", "--time", START,
        ])
        assert result.exit_code == 0, result.output
        assert "Interstellar Visitor: orbit cannot be propagated" in result.output
        assert "Opposition Rock: alt" in result.output
        assert "RA 0.000° Dec 0.000°" in result.output
