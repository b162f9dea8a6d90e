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
dtcompose: Device Tree Overlay Composition

Builds the device tree blobs handed to a Linux kernel at boot, from either a
compiled device tree source or a directory of pre-built DTBs, with an ordered
list of overlays applied on top.
"""

__version__ = "0.1.0"

from .pipeline import CompositionDriver, SourceResolver, OverlayNormalizer, build_package
from .config import load_config
from .models import (
    BuildFlags,
    DtsSource,
    Overlay,
    BarePathOverlay,
    KernelPackage,
    PackageConfig,
    BuildResult,
    Toolchain,
    coerce_overlay,
)
from .exceptions import (
    DtcomposeError,
    ConfigError,
    ValidationError,
    InvalidOverlaySpecError,
    CompileError,
    ApplyError,
)

__all__ = [
    # Pipeline
    'CompositionDriver',
    'SourceResolver',
    'OverlayNormalizer',
    'build_package',
    'load_config',
    # Models
    'BuildFlags',
    'DtsSource',
    'Overlay',
    'BarePathOverlay',
    'KernelPackage',
    'PackageConfig',
    'BuildResult',
    'Toolchain',
    'coerce_overlay',
    # Exceptions
    'DtcomposeError',
    'ConfigError',
    'ValidationError',
    'InvalidOverlaySpecError',
    'CompileError',
    'ApplyError',
]
