"""kyco-bridge - supervisor and streaming client for the KYCO SDK bridge."""

__version__ = "0.1.0"
__logo__ = "🌉"
