"""
Mixing Desk - agent backend for a visitor-facing interactive kiosk.

The kiosk sends each visitor turn to a tool-using LLM agent that can show
images and text on two "turntable" displays, search the content library,
choose the emotional delivery of its spoken reply, and manage the visit
lifecycle.

Quick Start:
    >>> from mixingdesk.server import create_app
    >>> app = create_app()
"""

from mixingdesk.config import Settings, get_settings

__version__ = "0.1.0"
__all__ = ["Settings", "get_settings"]
