from __future__ import annotations


class ConfigurationError(ValueError):
    pass
