"""droidshelf - Android package label and icon resolution for ADB launchers."""

__version__ = "0.1.0"
