"""mkimg - build GPT disk images from a Lua configuration script."""

from .__version__ import __version__


__all__ = ["__version__"]
