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
Compile a single device tree source against a kernel's include prefixes.
"""

import sys
from pathlib import Path
import click

from ..dtc.compiler import DtbCompiler
from ..models import BuildFlags, KernelPackage, Toolchain
from ..exceptions import CompileError, ConfigError


@click.command(name='compile')
@click.option('--input', '-i', required=True, help='Input DTS file')
@click.option('--output', '-o', required=True, help='Output DTB or DTBO file')
@click.option('--kernel', '-k', required=True, help='Kernel package providing dtc include prefixes')
@click.option('--kernel-dev', help='Kernel development output (default: --kernel)')
@click.option('--mod-dir-version', help='Kernel module directory version')
@click.option('--include', '-I', 'includes', multiple=True, help='Extra include path')
@click.option('--define', '-D', 'defines', multiple=True, help='Extra preprocessor define')
@click.option('--cc', help='C preprocessor driver (default: $CC or cc)')
@click.option('--dtc', help='Device tree compiler (default: $DTC or dtc)')
def compile_cmd(input: str, output: str, kernel: str, kernel_dev: str,
                mod_dir_version: str, includes, defines, cc: str, dtc: str):
    """
    Compile a DTS file into a DTB.

    The kernel include prefixes are searched first, then every --include in
    the order given.

    Example:

        dtcompose compile -i pps.dts -o pps.dtbo -k /path/to/linux -DMY_DEFINE
    """
    input_path = Path(input)
    if not input_path.exists():
        click.echo(f"Error: Input file '{input}' does not exist", err=True)
        sys.exit(3)

    output_path = Path(output)
    kernel_package = KernelPackage(
        path=Path(kernel),
        dev_path=Path(kernel_dev) if kernel_dev else None,
        mod_dir_version=mod_dir_version,
    )
    flags = BuildFlags(
        extra_preprocessor_flags=tuple(f"-D{d}" for d in defines),
        extra_include_paths=tuple(Path(p) for p in includes),
    )
    env = Toolchain.from_env()
    toolchain = Toolchain(cc=cc or env.cc, dtc=dtc or env.dtc)

    try:
        compiler = DtbCompiler(kernel_package, output_path.parent, toolchain)
        compiled = compiler.compile(output_path.name, dts_file=input_path, flags=flags)
    except ConfigError as e:
        click.echo(f"Configuration error: {e}", err=True)
        sys.exit(2)
    except CompileError as e:
        click.echo(f"Compile error: {e}", err=True)
        sys.exit(4)

    click.echo(f"Generated: {compiled}")
