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
Build plan report generation and formatting.
"""

from typing import Any, Dict, List

from ..models import Overlay, PackageConfig, ValidationResult


def describe_overlay_source(overlay: Overlay) -> str:
    """How the DTBO for an overlay is obtained, following DTBO precedence."""
    if overlay.dtbo_file is not None:
        return f"precompiled {overlay.dtbo_file}"
    if overlay.dts_file is not None:
        return f"compile {overlay.dts_file}"
    if overlay.dts_text is not None:
        return "compile inline dts_text"
    return "none"


class PlanReporter:
    """Generates build plan reports in various formats."""

    def generate_report(self, result: ValidationResult, config: PackageConfig,
                        format: str = 'text') -> str:
        """Generate build plan report in specified format."""
        if format == 'json':
            import json
            return json.dumps(self.generate_json_report(result, config), indent=2)
        elif format == 'yaml':
            return self.generate_yaml_report(result, config)
        else:
            return self._generate_text_report(result, config)

    def _generate_text_report(self, result: ValidationResult, config: PackageConfig) -> str:
        lines = []

        lines.append("Device Tree Build Plan")
        lines.append("=" * 22)

        if result.is_valid:
            lines.append("Status: ✓ VALID")
        else:
            lines.append("Status: ✗ INVALID")
        lines.append("")

        if not config.enabled:
            lines.append("Build: disabled")
            lines.append("")

        lines.extend(self._format_base(config))
        lines.append("")

        lines.extend(self._format_overlays(config))
        lines.append("")

        if result.errors:
            lines.append("Validation Errors:")
            for error in result.errors:
                lines.append(f"  ✗ {error}")
            lines.append("")

        if result.warnings:
            lines.append("Validation Warnings:")
            for warning in result.warnings:
                lines.append(f"  ⚠ {warning}")
            lines.append("")

        if result.is_valid:
            lines.append("✓ All validations passed")
        else:
            lines.append(f"✗ Validation failed with {len(result.errors)} errors")

        return "\n".join(lines)

    def _format_base(self, config: PackageConfig) -> List[str]:
        lines = ["Base Device Trees:"]
        source = config.dts_source
        if source is not None:
            origin = source.dts_file if source.dts_file is not None else "inline dts_text"
            lines.append(f"  Compile {source.dtb_name} from {origin}")
            if config.filter is not None:
                lines.append(f"  Filter: {config.filter} (ignored, dts_source is set)")
        else:
            lines.append(f"  Directory: {config.dtb_source_dir}")
            lines.append(f"  Filter: {config.filter or 'none'}")
        if config.explicit_name:
            lines.append(f"  Explicit DTB: {config.explicit_name}")
        return lines

    def _format_overlays(self, config: PackageConfig) -> List[str]:
        if not config.overlays:
            return ["Overlays: none"]

        lines = ["Overlays (in application order):"]
        for index, overlay in enumerate(config.overlays, 1):
            target = f" [filter: {overlay.filter}]" if overlay.filter else ""
            lines.append(f"  {index}. {overlay.name}{target}: {describe_overlay_source(overlay)}")
        return lines

    def generate_json_report(self, result: ValidationResult, config: PackageConfig) -> Dict[str, Any]:
        """Generate JSON-serializable report."""
        source = config.dts_source
        return {
            "status": "valid" if result.is_valid else "invalid",
            "enabled": config.enabled,
            "base": {
                "dts_source": source.name if source is not None else None,
                "dtb_source": str(config.dtb_source_dir) if source is None else None,
                "filter": config.filter,
                "filter_ignored": config.filter_ignored,
                "explicit_name": config.explicit_name,
            },
            "overlays": [
                {
                    "name": overlay.name,
                    "filter": overlay.filter,
                    "source": describe_overlay_source(overlay),
                }
                for overlay in config.overlays
            ],
            "errors": result.errors,
            "warnings": result.warnings,
        }

    def generate_yaml_report(self, result: ValidationResult, config: PackageConfig) -> str:
        """Generate YAML format report."""
        import yaml
        data = self.generate_json_report(result, config)
        return yaml.dump(data, default_flow_style=False, sort_keys=False)
