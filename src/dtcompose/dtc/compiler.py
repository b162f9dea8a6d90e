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
Device tree source compilation.

This module provides the DtbCompiler class which turns a DTS file or inline
DTS text into a DTB using the same flow as the kernel build: the C
preprocessor runs with the kernel's dtc include prefixes, and its output is
fed to dtc.
"""

import logging
import subprocess
import tempfile
from pathlib import Path
from typing import List, Optional

from ..models import BuildFlags, KernelPackage, Toolchain
from ..exceptions import CompileError

logger = logging.getLogger(__name__)


class DtbCompiler:
    """
    Compiles device tree sources against a kernel's include prefixes.

    Attributes:
        kernel: Kernel package providing dtc include prefixes
        output_dir: Directory compiled blobs are written to
        toolchain: Preprocessor and dtc binaries
    """

    def __init__(self, kernel: KernelPackage, output_dir, toolchain: Optional[Toolchain] = None):
        self.kernel = kernel
        self.output_dir = Path(output_dir)
        self.toolchain = toolchain or Toolchain()

    def include_paths(self, flags: BuildFlags) -> List[Path]:
        """Kernel include prefixes first, then user include paths in declared order."""
        return [self.kernel.include_prefix_dir] + list(flags.extra_include_paths)

    def preprocess_command(self, dts_file: Path, flags: BuildFlags) -> List[str]:
        cmd = [self.toolchain.cc, "-E", "-nostdinc"]
        cmd += [f"-I{path}" for path in self.include_paths(flags)]
        cmd += ["-undef", "-D__DTS__", "-x", "assembler-with-cpp"]
        cmd += list(flags.extra_preprocessor_flags)
        cmd.append(str(dts_file))
        return cmd

    def dtc_command(self, output_path: Path) -> List[str]:
        return [self.toolchain.dtc, "-I", "dts", "-O", "dtb", "-@", "-o", str(output_path), "-"]

    def compile(self, name: str, dts_file: Optional[Path] = None,
                dts_text: Optional[str] = None, flags: Optional[BuildFlags] = None) -> Path:
        """
        Compile a DTS source into a blob named `name` under output_dir.

        dts_file takes precedence over dts_text. Inline text is written
        verbatim to a temporary file before compilation.

        Args:
            name: Output file name, also used in error messages
            dts_file: Path to a DTS file
            dts_text: Literal DTS contents
            flags: Extra preprocessor flags and include paths

        Returns:
            Path to the compiled blob

        Raises:
            CompileError: If preprocessing or compilation fails
        """
        flags = flags or BuildFlags()

        if dts_file is not None:
            return self._compile_file(name, Path(dts_file), flags)

        if dts_text is None:
            raise CompileError(name, "no dts_file or dts_text given")

        with tempfile.TemporaryDirectory() as tmpdir:
            source = Path(tmpdir) / "dts"
            source.write_text(dts_text, encoding="utf-8")
            return self._compile_file(name, source, flags)

    def _compile_file(self, name: str, dts_file: Path, flags: BuildFlags) -> Path:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        output_path = self.output_dir / name

        logger.debug("Compiling %s from %s", name, dts_file)

        preprocessed = self._run(name, self.preprocess_command(dts_file, flags))
        self._run(name, self.dtc_command(output_path), input_text=preprocessed)

        return output_path

    def _run(self, name: str, cmd: List[str], input_text: Optional[str] = None) -> str:
        try:
            result = subprocess.run(
                cmd,
                input=input_text,
                capture_output=True,
                text=True,
                check=False
            )
        except FileNotFoundError:
            raise CompileError(name, f"{cmd[0]} not found")

        if result.returncode != 0:
            raise CompileError(
                name,
                f"{cmd[0]} exited with status {result.returncode}",
                result.stderr
            )
        return result.stdout
