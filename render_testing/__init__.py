"""Email Render Testing - cross-client render validation core.

Domain model and state machinery for testing rendered email HTML across
email clients, viewports and color schemes.
"""

__version__ = "0.1.0"
