"""Diagnostics routines for the configuration subsystem."""

from __future__ import annotations

from pathlib import Path

import yaml

from diagnostics.models import DiagnosticResult, DiagnosticStatus


def probe(base_dir: Path | None = None) -> DiagnosticResult:
    """Validate that the config directory holds a parseable default.yaml.

    Args:
        base_dir: Config directory to inspect; defaults to the loaded controller's.

    Returns:
        Diagnostic result indicating config readiness.
    """

    name = "config"
    if base_dir is None:
        from config.controller import ConfigController

        config_dir = ConfigController.get_instance().paths.config_dir
    else:
        config_dir = base_dir
    default_config = config_dir / "default.yaml"
    override_config = config_dir / "override.yaml"

    if not config_dir.exists():
        return DiagnosticResult(
            name=name,
            status=DiagnosticStatus.FAIL,
            details=f"Config directory missing at {config_dir}",
        )
    if not default_config.exists():
        return DiagnosticResult(
            name=name,
            status=DiagnosticStatus.FAIL,
            details=f"Missing default config at {default_config}",
        )

    try:
        for path in (default_config, override_config):
            if path.exists():
                yaml.safe_load(path.read_text(encoding="utf-8"))
    except OSError as exc:
        return DiagnosticResult(
            name=name,
            status=DiagnosticStatus.FAIL,
            details=f"Config access failed: {exc}",
        )
    except yaml.YAMLError as exc:
        return DiagnosticResult(
            name=name,
            status=DiagnosticStatus.FAIL,
            details=f"Config is not valid YAML: {exc}",
        )

    return DiagnosticResult(
        name=name,
        status=DiagnosticStatus.PASS,
        details=f"Config files readable at {config_dir}",
    )
