"""imagelink - keep scene objects in a live host world in sync with a folder of images."""

__version__ = "0.1.0"
__logo__ = "🖼️"
