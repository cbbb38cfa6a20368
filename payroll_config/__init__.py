"""
payroll_config -- single public entrypoint for payroll rules.

All runtime configuration flows through ``get_active_config()``, which
loads a YAML rule set (``sets/default.yaml`` unless a path is given),
validates it into a frozen ``PayrollRules`` and emits a
``payroll_config_loaded`` trace entry naming the config id, version and
checksum.  The kernel never imports from this package.
"""

from pathlib import Path

from payroll_config.loader import load_rules
from payroll_config.schema import PayrollRules
from payroll_kernel.logging_config import get_logger

_logger = get_logger("config")

_DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"


def get_active_config(config_path: Path | None = None) -> PayrollRules:
    """
    The ONLY public configuration entrypoint.

    Raises:
        FileNotFoundError: If the rule-set file does not exist.
        ValueError: If the rule set fails validation.
    """
    path = config_path or _DEFAULT_CONFIG_PATH
    rules = load_rules(path)

    _logger.info(
        "payroll_config_loaded",
        extra={
            "config_id": rules.config_id,
            "config_version": rules.version,
            "checksum": rules.checksum,
            "jurisdiction": rules.scope.jurisdiction,
        },
    )
    return rules


__all__ = ["get_active_config", "PayrollRules"]
