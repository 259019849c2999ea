"""
libvips MCP Server

A Model Context Protocol (MCP) server for image processing operations.
Supports resize, convert, morphology, FFT, convolution, drawing, statistics
and more, backed by Pillow and libvips (pyvips).
"""

__version__ = "1.2.0"
