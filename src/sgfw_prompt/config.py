"""Centralized configuration for the firewall prompt service."""

import os


def _parse_bool(value: str) -> bool:
    """Parse a boolean environment value."""
    return value.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    """
    Prompt service configuration with environment variable overrides.

    All configuration values are centralized here with sensible defaults.
    Values can be overridden via environment variables.
    """

    @staticmethod
    def _parse_int(name: str, default: str) -> int:
        """Parse an integer environment variable."""
        raw = os.getenv(name, default)
        try:
            return int(raw)
        except ValueError as e:
            raise ValueError(f"Invalid {name} environment variable: {e}")

    # ========================================================================
    # Bus Configuration
    # ========================================================================
    BUS: str = os.getenv("PROMPT_BUS", "system")
    BUS_NAME: str = os.getenv("PROMPT_BUS_NAME", "com.subgraph.FirewallPrompt")
    OBJECT_PATH: str = os.getenv("PROMPT_OBJECT_PATH", "/com/subgraph/FirewallPrompt")
    INTERFACE_NAME: str = "com.subgraph.FirewallPrompt"
    KEYBINDINGS_INTERFACE: str = "com.subgraph.FirewallPrompt.Keybindings"
    KEYBINDINGS_ENABLED: bool = _parse_bool(os.getenv("PROMPT_KEYBINDINGS", "true"))

    # ========================================================================
    # Session Acquisition
    # ========================================================================
    RETRY_INTERVAL_MS: int = _parse_int.__func__("PROMPT_RETRY_INTERVAL_MS", "20")
    MAX_ACQUIRE_ATTEMPTS: int = _parse_int.__func__("PROMPT_MAX_ATTEMPTS", "200")

    # ========================================================================
    # Dialogs
    # ========================================================================
    DIALOG_FACTORY: str = os.getenv(
        "PROMPT_DIALOG_FACTORY", "sgfw_prompt.dialog:HeadlessDialog"
    )
    HEADLESS_AUTO_DECIDE: bool = _parse_bool(
        os.getenv("PROMPT_HEADLESS_AUTO_DECIDE", "true")
    )

    # ========================================================================
    # Logging
    # ========================================================================
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
    LOG_FILE: str = os.getenv("LOG_FILE", "")

    @classmethod
    def retry_interval_seconds(cls) -> float:
        """Acquisition retry interval in seconds (asyncio timer units)."""
        return cls.RETRY_INTERVAL_MS / 1000.0

    @classmethod
    def validate(cls) -> bool:
        """
        Validate configuration consistency.

        Returns:
            True if validation passes

        Raises:
            ValueError: If validation fails
        """
        errors = []

        if cls.BUS not in {"system", "session"}:
            errors.append(f"BUS must be 'system' or 'session', got {cls.BUS!r}")

        if not cls.OBJECT_PATH.startswith("/"):
            errors.append(f"OBJECT_PATH must be absolute, got {cls.OBJECT_PATH!r}")

        if not cls.BUS_NAME or "." not in cls.BUS_NAME:
            errors.append(f"BUS_NAME must be a dotted bus name, got {cls.BUS_NAME!r}")

        if cls.RETRY_INTERVAL_MS <= 0:
            errors.append(f"RETRY_INTERVAL_MS must be > 0, got {cls.RETRY_INTERVAL_MS}")

        if cls.MAX_ACQUIRE_ATTEMPTS <= 0:
            errors.append(
                f"MAX_ACQUIRE_ATTEMPTS must be > 0, got {cls.MAX_ACQUIRE_ATTEMPTS}"
            )

        if ":" not in cls.DIALOG_FACTORY:
            errors.append(
                f"DIALOG_FACTORY must look like 'module:attribute', got {cls.DIALOG_FACTORY!r}"
            )

        if errors:
            raise ValueError(f"Config validation failed: {'; '.join(errors)}")

        return True
