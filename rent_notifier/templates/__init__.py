"""Templates module for the rent notifier.

Contains Jinja2 message rendering and the bundled HTML templates.

Author: Odiseo
Created: 2025-10-18
Version: 1.0.0
"""

from rent_notifier.templates.renderer import MessageRenderer, render

__all__ = ["MessageRenderer", "render"]
