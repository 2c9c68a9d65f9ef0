"""
ledger_config -- single public entrypoint for ledger configuration.

Responsibility:
    Provides the only way to obtain configuration at runtime through
    ``get_active_config()``.  YAML loading is internal; bridges in this
    package translate the parsed config into kernel inputs.

Architecture position:
    Configuration.  Sits above ``ledger_kernel``; the kernel never imports
    from ``ledger_config``.

Failure modes:
    - ``FileNotFoundError`` when the requested file does not exist.
    - ``ValueError`` / ``KeyError`` on invalid or incomplete configuration.
"""

from __future__ import annotations

import logging
from pathlib import Path

from ledger_config.loader import load_config
from ledger_config.schema import LedgerConfig

_logger = logging.getLogger("ledger_kernel.config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"


def get_active_config(path: Path | str | None = None) -> LedgerConfig:
    """
    Load and parse the ledger configuration.

    Args:
        path: YAML file to load.  Defaults to the packaged
            ``sets/default.yaml``.

    Emits a ``LEDGER_CONFIG_TRACE`` log entry with the config id, version
    and checksum on every successful call.
    """
    config_path = Path(path) if path is not None else DEFAULT_CONFIG_PATH
    config = load_config(config_path)
    _logger.info(
        "LEDGER_CONFIG_TRACE",
        extra={
            "trace_type": "LEDGER_CONFIG_TRACE",
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "account_count": len(config.accounts),
            "approval_rule_count": len(config.approval_rules),
        },
    )
    return config


__all__ = ["DEFAULT_CONFIG_PATH", "LedgerConfig", "get_active_config"]
