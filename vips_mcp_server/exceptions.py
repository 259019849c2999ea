"""
Exceptions raised by image operations and argument validation.
"""


class ImageProcessingError(Exception):
    """Base class for errors reported back to the MCP client"""


class ToolArgumentError(ImageProcessingError, ValueError):
    """Tool arguments do not match the declared input schema"""


class ImageNotFoundError(ImageProcessingError, FileNotFoundError):
    """An input image path does not exist"""


class BackendUnavailableError(ImageProcessingError):
    """libvips could not be loaded in this process"""
