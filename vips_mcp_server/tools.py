"""
Tool definitions advertised through tools/list.

The input schemas double as the argument contract: every tools/call is
validated against them before it reaches the image manager.
"""
import copy


def input_path():
    return {"type": "string", "description": "Path to input image"}


def output_path():
    return {"type": "string", "description": "Path for output image"}


BLEND_MODES = (
    "over", "in", "out", "atop", "dest", "dest-over", "dest-in", "dest-out",
    "dest-atop", "xor", "add", "saturate", "multiply", "screen", "overlay",
    "darken", "lighten", "colour-dodge", "colour-burn", "hard-light",
    "soft-light", "difference", "exclusion"
)

CONVERT_FORMATS = ("jpeg", "png", "webp", "tiff", "avif", "heif")

COLOR_SPACES = ("srgb", "rgb", "cmyk", "lab", "xyz", "scrgb", "hsv", "lch")

TOOLS = [
    {
        "name": "image_info",
        "description": "Get detailed information about an image file",
        "inputSchema": {
            "type": "object",
            "properties": {
                "image_path": {"type": "string", "description": "Path to the image file"}
            },
            "required": ["image_path"]
        }
    },
    {
        "name": "image_resize",
        "description": "Resize an image while preserving aspect ratio or with specific dimensions",
        "inputSchema": {
            "type": "object",
            "properties": {
                "input_path": input_path(),
                "output_path": output_path(),
                "width": {"type": "integer", "minimum": 1, "description": "Target width in pixels"},
                "height": {"type": "integer", "minimum": 1, "description": "Target height in pixels"},
                "maintain_aspect_ratio": {
                    "type": "boolean",
                    "description": "Whether to maintain aspect ratio (default: true)",
                    "default": True
                },
                "fit": {
                    "type": "string",
                    "enum": ["cover", "contain", "fill", "inside", "outside"],
                    "description": "How the image should be resized to fit the target dimensions",
                    "default": "cover"
                }
            },
            "required": ["input_path", "output_path"]
        }
    },
    {
        "name": "image_convert",
        "description": "Convert image between different formats",
        "inputSchema": {
            "type": "object",
            "properties": {
                "input_path": input_path(),
                "output_path": output_path(),
                "format": {"type": "string", "enum": list(CONVERT_FORMATS), "description": "Target format"},
                "quality": {
                    "type": "integer",
                    "minimum": 1,
                    "maximum": 100,
                    "description": "Quality for lossy formats (1-100)"
                }
            },
            "required": ["input_path", "output_path", "format"]
        }
    },
    {
        "name": "image_crop",
        "description": "Crop an image to specified dimensions and position",
        "inputSchema": {
            "type": "object",
            "properties": {
                "input_path": input_path(),
                "output_path": output_path(),
                "x": {"type": "integer", "minimum": 0, "description": "X coordinate of crop area (left)"},
                "y": {"type": "integer", "minimum": 0, "description": "Y coordinate of crop area (top)"},
                "width": {"type": "integer", "minimum": 1, "description": "Width of crop area"},
                "height": {"type": "integer", "minimum": 1, "description": "Height of crop area"}
            },
            "required": ["input_path", "output_path", "x", "y", "width", "height"]
        }
    },
    {
        "name": "image_rotate",
        "description": "Rotate an image by specified angle",
        "inputSchema": {
            "type": "object",
            "properties": {
                "input_path": input_path(),
                "output_path": output_path(),
                "angle": {"type": "number", "description": "Rotation angle in degrees (positive = clockwise)"},
                "background": {
                    "type": "string",
                    "description": "Background color for empty areas (hex color)",
                    "default": "#000000"
                }
            },
            "required": ["input_path", "output_path", "angle"]
        }
    },
    {
        "name": "image_flip",
        "description": "Flip an image horizontally or vertically",
        "inputSchema": {
            "type": "object",
            "properties": {
                "input_path": input_path(),
                "output_path": output_path(),
                "direction": {
                    "type": "string",
                    "enum": ["horizontal", "vertical"],
                    "description": "Direction to flip the image"
                }
            },
            "required": ["input_path", "output_path", "direction"]
        }
    },
    {
        "name": "image_blur",
        "description": "Apply Gaussian blur to an image",
        "inputSchema": {
            "type": "object",
            "properties": {
                "input_path": input_path(),
                "output_path": output_path(),
                "sigma": {
                    "type": "number",
                    "description": "Blur strength (sigma value)",
                    "minimum": 0.3,
                    "maximum": 1000,
                    "default": 1.0
                }
            },
            "required": ["input_path", "output_path"]
        }
    },
    {
        "name": "image_sharpen",
        "description": "Apply unsharp mask to sharpen an image",
        "inputSchema": {
            "type": "object",
            "properties": {
                "input_path": input_path(),
                "output_path": output_path(),
                "sigma": {"type": "number", "description": "Blur sigma for the mask", "default": 1.0},
                "flat": {"type": "number", "description": "Flat area threshold", "default": 1.0},
                "jagged": {"type": "number", "description": "Jagged area threshold", "default": 2.0}
            },
            "required": ["input_path", "output_path"]
        }
    },
    {
        "name": "image_adjust_brightness",
        "description": "Adjust image brightness",
        "inputSchema": {
            "type": "object",
            "properties": {
                "input_path": input_path(),
                "output_path": output_path(),
                "brightness": {
                    "type": "number",
                    "description": "Brightness adjustment (-100 to 100)",
                    "minimum": -100,
                    "maximum": 100
                }
            },
            "required": ["input_path", "output_path", "brightness"]
        }
    },
    {
        "name": "image_adjust_contrast",
        "description": "Adjust image contrast",
        "inputSchema": {
            "type": "object",
            "properties": {
                "input_path": input_path(),
                "output_path": output_path(),
                "contrast": {
                    "type": "number",
                    "description": "Contrast multiplier (0.1 to 3.0, 1.0 = no change)",
                    "minimum": 0.1,
                    "maximum": 3.0
                }
            },
            "required": ["input_path", "output_path", "contrast"]
        }
    },
    {
        "name": "image_adjust_saturation",
        "description": "Adjust image saturation",
        "inputSchema": {
            "type": "object",
            "properties": {
                "input_path": input_path(),
                "output_path": output_path(),
                "saturation": {
                    "type": "number",
                    "description": "Saturation multiplier (0.0 to 2.0, 1.0 = no change)",
                    "minimum": 0.0,
                    "maximum": 2.0
                }
            },
            "required": ["input_path", "output_path", "saturation"]
        }
    },
    {
        "name": "image_grayscale",
        "description": "Convert image to grayscale",
        "inputSchema": {
            "type": "object",
            "properties": {
                "input_path": input_path(),
                "output_path": output_path()
            },
            "required": ["input_path", "output_path"]
        }
    },
    {
        "name": "image_composite",
        "description": "Composite two images together with various blend modes",
        "inputSchema": {
            "type": "object",
            "properties": {
                "base_image_path": {"type": "string", "description": "Path to base image"},
                "overlay_image_path": {"type": "string", "description": "Path to overlay image"},
                "output_path": output_path(),
                "x": {"type": "integer", "description": "X position of overlay on base image", "default": 0},
                "y": {"type": "integer", "description": "Y position of overlay on base image", "default": 0},
                "blend": {
                    "type": "string",
                    "enum": list(BLEND_MODES),
                    "description": "Blend mode for compositing",
                    "default": "over"
                }
            },
            "required": ["base_image_path", "overlay_image_path", "output_path"]
        }
    },
    {
        "name": "image_thumbnail",
        "description": "Create a thumbnail maintaining aspect ratio",
        "inputSchema": {
            "type": "object",
            "properties": {
                "input_path": input_path(),
                "output_path": output_path(),
                "size": {"type": "integer", "minimum": 1, "description": "Maximum dimension for thumbnail"},
                "crop": {"type": "boolean", "description": "Whether to crop to exact square", "default": False}
            },
            "required": ["input_path", "output_path", "size"]
        }
    },
    {
        "name": "image_extract_channel",
        "description": "Extract a specific channel from an image",
        "inputSchema": {
            "type": "object",
            "properties": {
                "input_path": input_path(),
                "output_path": output_path(),
                "channel": {
                    "type": "integer",
                    "description": "Channel index to extract (0=Red, 1=Green, 2=Blue, 3=Alpha)",
                    "minimum": 0,
                    "maximum": 3
                }
            },
            "required": ["input_path", "output_path", "channel"]
        }
    },
    {
        "name": "image_histogram",
        "description": "Generate histogram data for an image",
        "inputSchema": {
            "type": "object",
            "properties": {
                "input_path": input_path(),
                "bins": {
                    "type": "integer",
                    "description": "Number of histogram bins",
                    "minimum": 1,
                    "maximum": 256,
                    "default": 256
                }
            },
            "required": ["input_path"]
        }
    },
    {
        "name": "create_solid_color",
        "description": "Create a solid color image",
        "inputSchema": {
            "type": "object",
            "properties": {
                "output_path": output_path(),
                "width": {"type": "integer", "minimum": 1, "description": "Image width in pixels"},
                "height": {"type": "integer", "minimum": 1, "description": "Image height in pixels"},
                "color": {
                    "type": "string",
                    "description": "Color in hex format (e.g., #FF0000)",
                    "default": "#FFFFFF"
                }
            },
            "required": ["output_path", "width", "height"]
        }
    },
    {
        "name": "image_morphology",
        "description": "Apply morphological operations (erosion, dilation, opening, closing)",
        "inputSchema": {
            "type": "object",
            "properties": {
                "input_path": input_path(),
                "output_path": output_path(),
                "operation": {
                    "type": "string",
                    "enum": ["erode", "dilate", "opening", "closing"],
                    "description": "Morphological operation to apply"
                },
                "kernel_size": {
                    "type": "integer",
                    "minimum": 1,
                    "default": 3,
                    "description": "Size of morphological kernel"
                },
                "iterations": {"type": "integer", "default": 1, "minimum": 1, "description": "Number of iterations"}
            },
            "required": ["input_path", "output_path", "operation"]
        }
    },
    {
        "name": "image_draw_line",
        "description": "Draw a line on the image",
        "inputSchema": {
            "type": "object",
            "properties": {
                "input_path": input_path(),
                "output_path": output_path(),
                "x1": {"type": "integer", "description": "Start X coordinate"},
                "y1": {"type": "integer", "description": "Start Y coordinate"},
                "x2": {"type": "integer", "description": "End X coordinate"},
                "y2": {"type": "integer", "description": "End Y coordinate"},
                "color": {"type": "string", "default": "#000000", "description": "Line color (hex format)"},
                "width": {"type": "integer", "minimum": 1, "default": 1, "description": "Line width in pixels"}
            },
            "required": ["input_path", "output_path", "x1", "y1", "x2", "y2"]
        }
    },
    {
        "name": "image_draw_circle",
        "description": "Draw a circle on the image",
        "inputSchema": {
            "type": "object",
            "properties": {
                "input_path": input_path(),
                "output_path": output_path(),
                "x": {"type": "integer", "description": "Center X coordinate"},
                "y": {"type": "integer", "description": "Center Y coordinate"},
                "radius": {"type": "integer", "minimum": 0, "description": "Circle radius in pixels"},
                "fill": {"type": "boolean", "default": False, "description": "Whether to fill the circle"},
                "color": {"type": "string", "default": "#000000", "description": "Circle color (hex format)"}
            },
            "required": ["input_path", "output_path", "x", "y", "radius"]
        }
    },
    {
        "name": "image_edge_detection",
        "description": "Apply edge detection algorithms",
        "inputSchema": {
            "type": "object",
            "properties": {
                "input_path": input_path(),
                "output_path": output_path(),
                "method": {
                    "type": "string",
                    "enum": ["sobel", "prewitt", "roberts", "laplacian"],
                    "description": "Edge detection method to use"
                },
                "threshold": {
                    "type": "number",
                    "minimum": 0,
                    "maximum": 255,
                    "default": 128,
                    "description": "Edge threshold (0-255)"
                }
            },
            "required": ["input_path", "output_path", "method"]
        }
    },
    {
        "name": "image_advanced_stats",
        "description": "Calculate comprehensive image statistics using libvips",
        "inputSchema": {
            "type": "object",
            "properties": {
                "input_path": input_path()
            },
            "required": ["input_path"]
        }
    },
    {
        "name": "image_fft",
        "description": "Apply Fast Fourier Transform for frequency domain analysis",
        "inputSchema": {
            "type": "object",
            "properties": {
                "input_path": input_path(),
                "output_path": output_path(),
                "inverse": {"type": "boolean", "default": False, "description": "Apply inverse FFT"}
            },
            "required": ["input_path", "output_path"]
        }
    },
    {
        "name": "image_custom_convolution",
        "description": "Apply custom convolution kernel for advanced filtering",
        "inputSchema": {
            "type": "object",
            "properties": {
                "input_path": input_path(),
                "output_path": output_path(),
                "kernel": {
                    "type": "array",
                    "minItems": 1,
                    "items": {"type": "array", "minItems": 1, "items": {"type": "number"}},
                    "description": "2D convolution kernel matrix"
                },
                "scale": {"type": "number", "default": 1, "description": "Kernel scale factor"},
                "offset": {"type": "number", "default": 0, "description": "Output offset"}
            },
            "required": ["input_path", "output_path", "kernel"]
        }
    },
    {
        "name": "image_colorspace_convert",
        "description": "Convert between different color spaces",
        "inputSchema": {
            "type": "object",
            "properties": {
                "input_path": input_path(),
                "output_path": output_path(),
                "space": {"type": "string", "enum": list(COLOR_SPACES), "description": "Target color space"}
            },
            "required": ["input_path", "output_path", "space"]
        }
    },
    {
        "name": "image_add_noise",
        "description": "Add various types of noise to images",
        "inputSchema": {
            "type": "object",
            "properties": {
                "input_path": input_path(),
                "output_path": output_path(),
                "noise_type": {
                    "type": "string",
                    "enum": ["gaussian", "uniform", "salt_pepper"],
                    "description": "Type of noise to add"
                },
                "amount": {
                    "type": "number",
                    "default": 0.1,
                    "minimum": 0,
                    "maximum": 1,
                    "description": "Noise intensity (0-1)"
                }
            },
            "required": ["input_path", "output_path", "noise_type"]
        }
    },
    {
        "name": "image_perspective_transform",
        "description": "Apply perspective transformation to images",
        "inputSchema": {
            "type": "object",
            "properties": {
                "input_path": input_path(),
                "output_path": output_path(),
                "corners": {
                    "type": "array",
                    "items": {"type": "array", "items": {"type": "number"}, "minItems": 2, "maxItems": 2},
                    "minItems": 4,
                    "maxItems": 4,
                    "description": "Four corner points [[x1,y1], [x2,y2], [x3,y3], [x4,y4]]"
                }
            },
            "required": ["input_path", "output_path", "corners"]
        }
    },
    {
        "name": "image_texture_analysis",
        "description": "Analyze image texture using statistical measures",
        "inputSchema": {
            "type": "object",
            "properties": {
                "input_path": input_path(),
                "window_size": {"type": "integer", "minimum": 1, "default": 5, "description": "Analysis window size"}
            },
            "required": ["input_path"]
        }
    },
    {
        "name": "image_flood_fill",
        "description": "Fill connected regions with specified color",
        "inputSchema": {
            "type": "object",
            "properties": {
                "input_path": input_path(),
                "output_path": output_path(),
                "x": {"type": "integer", "minimum": 0, "description": "Starting X coordinate"},
                "y": {"type": "integer", "minimum": 0, "description": "Starting Y coordinate"},
                "fill_color": {"type": "string", "default": "#FF0000", "description": "Fill color (hex format)"},
                "tolerance": {"type": "number", "minimum": 0, "default": 10, "description": "Color tolerance for filling"}
            },
            "required": ["input_path", "output_path", "x", "y"]
        }
    },
    {
        "name": "image_create_pyramid",
        "description": "Create image pyramid for multi-resolution analysis",
        "inputSchema": {
            "type": "object",
            "properties": {
                "input_path": input_path(),
                "output_dir": {"type": "string", "description": "Directory for pyramid levels"},
                "levels": {
                    "type": "integer",
                    "default": 4,
                    "minimum": 2,
                    "maximum": 8,
                    "description": "Number of pyramid levels"
                },
                "scale_factor": {
                    "type": "number",
                    "default": 0.5,
                    "exclusiveMinimum": 0,
                    "maximum": 1,
                    "description": "Scale factor between levels"
                }
            },
            "required": ["input_path", "output_dir"]
        }
    }
]

TOOLS_BY_NAME = {tool["name"]: tool for tool in TOOLS}


def tool_descriptors():
    """Copies of the tool descriptors, safe to hand to callers that may mutate them."""
    return copy.deepcopy(TOOLS)
