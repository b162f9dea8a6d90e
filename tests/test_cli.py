# Copyright 2025 Multikernel Technologies, Inc.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Tests for the dtcompose command-line interface.
"""

import json
from unittest.mock import patch

import yaml
from click.testing import CliRunner

from dtcompose.cli import main

from conftest import read_prop


def write_config(tmp_path, data):
    path = tmp_path / "devicetree.yaml"
    path.write_text(yaml.safe_dump(data))
    return path


class TestBuildCommand:
    """Test the build subcommand."""

    def test_build_with_precompiled_overlay(self, kernel_package, dtb_dir, pps_dtbo, tmp_path):
        """Test building a filtered DTB set with a bare-path overlay."""
        config = write_config(tmp_path, {
            "kernel_package": str(kernel_package.path),
            "dtb_source": str(dtb_dir),
            "filter": "*rpi-4*.dtb",
            "name": "broadcom/bcm2711-rpi-4-b.dtb",
            "overlays": [str(pps_dtbo)],
        })
        out = tmp_path / "build"

        result = CliRunner().invoke(main, ["build", "-c", str(config), "-o", str(out)])

        assert result.exit_code == 0, result.output
        package = out / "dtbs-overlaid"
        assert f"Package: {package}" in result.output
        assert f"DTB: {package / 'broadcom' / 'bcm2711-rpi-4-b.dtb'}" in result.output
        assert read_prop(package / "broadcom" / "bcm2711-rpi-4-b.dtb", "/soc/pps", "status") == "okay"

    def test_build_invalid_overlays(self, kernel_package, tmp_path):
        """Test invalid overlays fail the build and list every name."""
        config = write_config(tmp_path, {
            "kernel_package": str(kernel_package.path),
            "overlays": [{"name": "bad"}, {"name": "worse"}],
        })

        result = CliRunner().invoke(main, ["build", "-c", str(config), "-o", str(tmp_path / "build")])

        assert result.exit_code == 1
        assert "bad worse" in result.output

    def test_build_disabled(self, kernel_package, tmp_path):
        """Test disabled configurations are reported and not built."""
        config = write_config(tmp_path, {"enable": False, "kernel_package": str(kernel_package.path)})

        result = CliRunner().invoke(main, ["build", "-c", str(config), "-o", str(tmp_path / "build")])

        assert result.exit_code == 0
        assert "disabled" in result.output
        assert not (tmp_path / "build").exists()

    @patch("dtcompose.dtc.compiler.subprocess.run")
    def test_build_compile_failure(self, mock_run, kernel_package, tmp_path):
        """Test compile failures exit with the tool failure code."""
        import subprocess
        mock_run.return_value = subprocess.CompletedProcess([], 1, stdout="", stderr="syntax error")
        config = write_config(tmp_path, {
            "kernel_package": str(kernel_package.path),
            "dts_source": {"name": "top", "dts_text": "broken"},
        })

        result = CliRunner().invoke(main, ["build", "-c", str(config), "-o", str(tmp_path / "build")])

        assert result.exit_code == 4
        assert "top.dtb" in result.output

    def test_build_configuration_error(self, kernel_package, tmp_path):
        """Test configuration errors exit with the same code as validate."""
        config = write_config(tmp_path, {"base": str(kernel_package.path)})

        build = CliRunner().invoke(main, ["build", "-c", str(config), "-o", str(tmp_path / "build")])
        validate = CliRunner().invoke(main, ["validate", "-c", str(config)])

        assert build.exit_code == 2
        assert validate.exit_code == 2
        assert "kernel_package" in build.output

    def test_build_missing_config(self, tmp_path):
        """Test a missing configuration file is a file error."""
        result = CliRunner().invoke(main, [
            "build", "-c", str(tmp_path / "missing.yaml"), "-o", str(tmp_path / "build"),
        ])

        assert result.exit_code == 3


class TestValidateCommand:
    """Test the validate subcommand."""

    def test_validate_ok(self, kernel_package, dtb_dir, tmp_path):
        """Test a valid configuration."""
        config = write_config(tmp_path, {
            "kernel_package": str(kernel_package.path),
            "dtb_source": str(dtb_dir),
            "overlays": [{"name": "spi", "dts_text": "/dts-v1/;"}],
        })

        result = CliRunner().invoke(main, ["validate", "-c", str(config)])

        assert result.exit_code == 0
        assert "Configuration is valid" in result.output

    def test_validate_reports_all_invalid_overlays(self, kernel_package, tmp_path):
        """Test every invalid overlay is listed."""
        config = write_config(tmp_path, {
            "kernel_package": str(kernel_package.path),
            "overlays": [{"name": "bad"}, {"name": "spi", "dts_text": "x"}, {"name": "worse"}],
        })

        result = CliRunner().invoke(main, ["validate", "-c", str(config)])

        assert result.exit_code == 1
        assert "Overlay 'bad'" in result.output
        assert "Overlay 'worse'" in result.output
        assert "Overlay 'spi'" not in result.output

    def test_validate_json_report(self, kernel_package, dtb_dir, pps_dtbo, tmp_path):
        """Test the JSON build plan lists overlays in order."""
        config = write_config(tmp_path, {
            "kernel_package": str(kernel_package.path),
            "dtb_source": str(dtb_dir),
            "overlays": [str(pps_dtbo), {"name": "spi", "filter": "*rpi*.dtb", "dts_text": "x"}],
        })

        result = CliRunner().invoke(main, ["validate", "-c", str(config), "--report", "--format", "json"])

        assert result.exit_code == 0
        report = json.loads(result.output)
        assert report["status"] == "valid"
        assert [o["name"] for o in report["overlays"]] == ["pps.dtbo", "spi"]
        assert report["overlays"][0]["source"] == f"precompiled {pps_dtbo}"
        assert report["overlays"][1]["source"] == "compile inline dts_text"

    def test_validate_text_report_notes_ignored_filter(self, kernel_package, tmp_path):
        """Test the text report flags a filter ignored by dts_source."""
        config = write_config(tmp_path, {
            "kernel_package": str(kernel_package.path),
            "dts_source": {"name": "top", "dts_text": "/dts-v1/;"},
            "filter": "*rpi*.dtb",
        })

        result = CliRunner().invoke(main, ["validate", "-c", str(config), "--report"])

        assert result.exit_code == 0
        assert "Compile top.dtb from inline dts_text" in result.output
        assert "ignored" in result.output

    def test_validate_missing_file(self, tmp_path):
        """Test a missing configuration file."""
        result = CliRunner().invoke(main, ["validate", "-c", str(tmp_path / "missing.yaml")])

        assert result.exit_code == 3


class TestApplyCommand:
    """Test the apply subcommand."""

    def test_apply_with_filter(self, dtb_dir, pps_dtbo, tmp_path):
        """Test applying a DTBO to filtered DTBs."""
        out = tmp_path / "out"

        result = CliRunner().invoke(main, [
            "apply", "-b", str(dtb_dir), "-o", str(out), "--filter", "*rockpro64*.dtb", str(pps_dtbo),
        ])

        assert result.exit_code == 0, result.output
        assert read_prop(out / "rockchip" / "rk3399-rockpro64.dtb", "/soc/pps", "status") == "okay"
        assert read_prop(out / "broadcom" / "bcm2711-rpi-4-b.dtb", "/soc/pps", "status") is None

    def test_apply_missing_overlay(self, dtb_dir, tmp_path):
        """Test missing DTBO files are rejected."""
        result = CliRunner().invoke(main, [
            "apply", "-b", str(dtb_dir), "-o", str(tmp_path / "out"), str(tmp_path / "missing.dtbo"),
        ])

        assert result.exit_code == 3

    def test_apply_in_place_rejected(self, dtb_dir, pps_dtbo):
        """Test writing into the base directory is refused without deleting it."""
        before = sorted(p for p in dtb_dir.rglob("*") if p.is_file())

        result = CliRunner().invoke(main, ["apply", "-b", str(dtb_dir), "-o", str(dtb_dir), str(pps_dtbo)])

        assert result.exit_code == 2
        assert "overlaps" in result.output
        assert sorted(p for p in dtb_dir.rglob("*") if p.is_file()) == before


class TestCompileCommand:
    """Test the compile subcommand."""

    @patch("dtcompose.dtc.compiler.subprocess.run")
    def test_compile(self, mock_run, kernel_package, tmp_path):
        """Test a single DTS is compiled with extra includes and defines."""
        import subprocess
        mock_run.return_value = subprocess.CompletedProcess([], 0, stdout="", stderr="")
        dts = tmp_path / "pps.dts"
        dts.write_text("/dts-v1/;\n")
        out = tmp_path / "out" / "pps.dtbo"

        result = CliRunner().invoke(main, [
            "compile", "-i", str(dts), "-o", str(out), "-k", str(kernel_package.path),
            "-I", "/inc", "-D", "MY_DEFINE", "--cc", "gcc",
        ])

        assert result.exit_code == 0, result.output
        cpp_cmd = mock_run.call_args_list[0].args[0]
        assert cpp_cmd[0] == "gcc"
        assert f"-I{kernel_package.include_prefix_dir}" in cpp_cmd
        assert cpp_cmd.index(f"-I{kernel_package.include_prefix_dir}") < cpp_cmd.index("-I/inc")
        assert "-DMY_DEFINE" in cpp_cmd
        assert f"Generated: {out}" in result.output
