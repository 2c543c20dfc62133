"""Engine settings.

Settings are a frozen dataclass so a session can be handed one explicitly;
``EngineSettings.from_env()`` builds one from ``BARAKATNA_FORMS_*``
environment variables for deployments that configure the engine that way.

Environment variables:
    BARAKATNA_FORMS_VALIDATE_ON_CHANGE: re-validate a field on every change
    BARAKATNA_FORMS_CHECK_REFERENCES: log broken field/section references on load
    BARAKATNA_FORMS_STRICT_REFERENCES: refuse to load forms with broken references
"""

import os
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional


ENV_PREFIX = "BARAKATNA_FORMS_"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off", ""}


def _parse_bool(name: str, raw: str) -> bool:
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ValueError(f"{name} must be a boolean (true/false), got {raw!r}")


@dataclass(frozen=True)
class EngineSettings:
    """Behaviour switches for form sessions.

    Attributes:
        validate_on_change: Re-validate a field each time its value changes
        check_references: Check field/section references when a session loads a form
        strict_references: Raise MetadataError instead of logging broken references
    """
    validate_on_change: bool = False
    check_references: bool = True
    strict_references: bool = False

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "EngineSettings":
        """Build settings from environment variables, defaulting unset ones.

        Raises:
            ValueError: If a variable is set to something that is not a boolean
        """
        environ = os.environ if environ is None else environ
        overrides: Dict[str, Any] = {}
        for attr in ("validate_on_change", "check_references", "strict_references"):
            name = ENV_PREFIX + attr.upper()
            if name in environ:
                overrides[attr] = _parse_bool(name, environ[name])
        return cls(**overrides)


DEFAULT_SETTINGS = EngineSettings()


__all__ = [
    "ENV_PREFIX",
    "EngineSettings",
    "DEFAULT_SETTINGS",
]
