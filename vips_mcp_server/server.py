"""
libvips MCP Server

A Model Context Protocol (MCP) server that provides image processing capabilities.
Serves JSON-RPC over HTTP; see stdio_server for the stdio transport.
"""

import argparse
import json
import os

from flask import Flask, request, jsonify
from flask_cors import CORS

from . import __version__
from .image_manager import ImageManager
from .log import get_logger, setup_logging
from .tools import TOOLS, TOOLS_BY_NAME, tool_descriptors
from .validation import validate_arguments

logger = get_logger("server")

app = Flask(__name__)
CORS(app)

# Global image manager instance
image_manager = None

# MCP Protocol version
MCP_VERSION = "2024-11-05"

# Server info
SERVER_INFO = {
    "name": "libvips-mcp-server",
    "version": __version__
}


def create_json_rpc_response(request_id, result):
    """Create a JSON-RPC 2.0 response"""
    return {"jsonrpc": "2.0", "id": request_id, "result": result}


def create_json_rpc_error(request_id, code, message):
    """Create a JSON-RPC 2.0 error response"""
    return {"jsonrpc": "2.0", "id": request_id, "error": {"code": code, "message": message}}


def error_content(message):
    return {"content": [{"type": "text", "text": message}], "isError": True}


def initialize_image_manager(working_dir=None, s3_bucket=None):
    """Create the process-wide image manager from arguments or the environment"""
    global image_manager
    working_dir = working_dir or os.environ.get("IMAGE_WORKING_DIR", "/tmp")
    s3_bucket = s3_bucket or os.environ.get("S3_BUCKET") or None
    expiry_hours = float(os.environ.get("S3_URL_EXPIRY_HOURS", "24"))
    image_manager = ImageManager(
        working_dir=working_dir,
        s3_bucket=s3_bucket,
        enable_s3=s3_bucket is not None,
        url_expiry_hours=expiry_hours
    )
    logger.info("Image manager initialized (working dir %s)", image_manager.base_working_dir)
    return image_manager


def get_image_manager():
    if image_manager is None:
        return initialize_image_manager()
    return image_manager


def handle_initialize(params):
    """Handle MCP initialize request"""
    return {"protocolVersion": MCP_VERSION, "capabilities": {"tools": {}}, "serverInfo": SERVER_INFO}


def handle_tools_list(params):
    """Handle tools/list request"""
    return {"tools": tool_descriptors()}


def call_tool(manager, tool_name, arguments):
    """Route a validated tools/call to the image manager"""
    if tool_name == "image_info":
        return manager.image_info(arguments["image_path"])
    elif tool_name == "image_resize":
        return manager.resize_image(
            arguments["input_path"],
            arguments["output_path"],
            arguments.get("width"),
            arguments.get("height"),
            arguments.get("maintain_aspect_ratio", True),
            arguments.get("fit", "cover")
        )
    elif tool_name == "image_convert":
        return manager.convert_format(
            arguments["input_path"],
            arguments["output_path"],
            arguments["format"],
            arguments.get("quality")
        )
    elif tool_name == "image_crop":
        return manager.crop_image(
            arguments["input_path"],
            arguments["output_path"],
            arguments["x"],
            arguments["y"],
            arguments["width"],
            arguments["height"]
        )
    elif tool_name == "image_rotate":
        return manager.rotate_image(
            arguments["input_path"],
            arguments["output_path"],
            arguments["angle"],
            arguments.get("background", "#000000")
        )
    elif tool_name == "image_flip":
        return manager.flip_image(arguments["input_path"], arguments["output_path"], arguments["direction"])
    elif tool_name == "image_blur":
        return manager.blur_image(arguments["input_path"], arguments["output_path"], arguments.get("sigma", 1.0))
    elif tool_name == "image_sharpen":
        return manager.sharpen_image(
            arguments["input_path"],
            arguments["output_path"],
            arguments.get("sigma", 1.0),
            arguments.get("flat", 1.0),
            arguments.get("jagged", 2.0)
        )
    elif tool_name == "image_adjust_brightness":
        return manager.adjust_brightness(arguments["input_path"], arguments["output_path"], arguments["brightness"])
    elif tool_name == "image_adjust_contrast":
        return manager.adjust_contrast(arguments["input_path"], arguments["output_path"], arguments["contrast"])
    elif tool_name == "image_adjust_saturation":
        return manager.adjust_saturation(arguments["input_path"], arguments["output_path"], arguments["saturation"])
    elif tool_name == "image_grayscale":
        return manager.grayscale_image(arguments["input_path"], arguments["output_path"])
    elif tool_name == "image_composite":
        return manager.composite_images(
            arguments["base_image_path"],
            arguments["overlay_image_path"],
            arguments["output_path"],
            arguments.get("x", 0),
            arguments.get("y", 0),
            arguments.get("blend", "over")
        )
    elif tool_name == "image_thumbnail":
        return manager.create_thumbnail(
            arguments["input_path"],
            arguments["output_path"],
            arguments["size"],
            arguments.get("crop", False)
        )
    elif tool_name == "image_extract_channel":
        return manager.extract_channel(arguments["input_path"], arguments["output_path"], arguments["channel"])
    elif tool_name == "image_histogram":
        return manager.histogram(arguments["input_path"], arguments.get("bins", 256))
    elif tool_name == "create_solid_color":
        return manager.create_solid_color(
            arguments["output_path"],
            arguments["width"],
            arguments["height"],
            arguments.get("color", "#FFFFFF")
        )
    elif tool_name == "image_morphology":
        return manager.morphology(
            arguments["input_path"],
            arguments["output_path"],
            arguments["operation"],
            arguments.get("kernel_size", 3),
            arguments.get("iterations", 1)
        )
    elif tool_name == "image_draw_line":
        return manager.draw_line(
            arguments["input_path"],
            arguments["output_path"],
            arguments["x1"],
            arguments["y1"],
            arguments["x2"],
            arguments["y2"],
            arguments.get("color", "#000000"),
            arguments.get("width", 1)
        )
    elif tool_name == "image_draw_circle":
        return manager.draw_circle(
            arguments["input_path"],
            arguments["output_path"],
            arguments["x"],
            arguments["y"],
            arguments["radius"],
            arguments.get("fill", False),
            arguments.get("color", "#000000")
        )
    elif tool_name == "image_edge_detection":
        return manager.edge_detection(
            arguments["input_path"],
            arguments["output_path"],
            arguments["method"],
            arguments.get("threshold", 128)
        )
    elif tool_name == "image_advanced_stats":
        return manager.advanced_stats(arguments["input_path"])
    elif tool_name == "image_fft":
        return manager.fft(arguments["input_path"], arguments["output_path"], arguments.get("inverse", False))
    elif tool_name == "image_custom_convolution":
        return manager.custom_convolution(
            arguments["input_path"],
            arguments["output_path"],
            arguments["kernel"],
            arguments.get("scale", 1),
            arguments.get("offset", 0)
        )
    elif tool_name == "image_colorspace_convert":
        return manager.colorspace_convert(arguments["input_path"], arguments["output_path"], arguments["space"])
    elif tool_name == "image_add_noise":
        return manager.add_noise(
            arguments["input_path"],
            arguments["output_path"],
            arguments["noise_type"],
            arguments.get("amount", 0.1)
        )
    elif tool_name == "image_perspective_transform":
        return manager.perspective_transform(arguments["input_path"], arguments["output_path"], arguments["corners"])
    elif tool_name == "image_texture_analysis":
        return manager.texture_analysis(arguments["input_path"], arguments.get("window_size", 5))
    elif tool_name == "image_flood_fill":
        return manager.flood_fill(
            arguments["input_path"],
            arguments["output_path"],
            arguments["x"],
            arguments["y"],
            arguments.get("fill_color", "#FF0000"),
            arguments.get("tolerance", 10)
        )
    elif tool_name == "image_create_pyramid":
        return manager.create_pyramid(
            arguments["input_path"],
            arguments["output_dir"],
            arguments.get("levels", 4),
            arguments.get("scale_factor", 0.5)
        )
    raise KeyError(tool_name)


def format_result(result):
    """Turn an image manager result dict into MCP text content"""
    content = []
    if result.get("output"):
        content.append({"type": "text", "text": result["output"]})
    if result.get("metadata"):
        m = result["metadata"]
        content.append({"type": "text", "text": f"\n[Image] {m.get('width')}x{m.get('height')} {m.get('format')} {m.get('mode')}"})
    if result.get("backend"):
        note = f"\n[Backend] {result['backend']}"
        if result.get("fallback_from"):
            note += f" (fallback after {result['fallback_from']} failed)"
        content.append({"type": "text", "text": note})
    if result.get("s3_upload"):
        s3 = result["s3_upload"]
        content.append({"type": "text", "text": f"\n[Download] {s3.get('size_bytes', 0) // 1024} KB:\n{s3.get('presigned_url', '')}"})
    return {"content": content, "isError": False}


def handle_tools_call(params):
    """Handle tools/call request"""
    if isinstance(params, str):
        try:
            params = json.loads(params)
        except json.JSONDecodeError:
            return error_content("Invalid params: expected object, got string")
    if not isinstance(params, dict):
        return error_content("Invalid params: expected object")

    tool_name = params.get("name")
    arguments = params.get("arguments") or {}

    if isinstance(arguments, str):
        try:
            arguments = json.loads(arguments)
        except json.JSONDecodeError:
            return error_content(f"Invalid arguments for {tool_name}: not valid JSON")

    if tool_name not in TOOLS_BY_NAME:
        return error_content(f"Unknown tool: {tool_name}")

    try:
        arguments = validate_arguments(tool_name, arguments)
        logger.debug("tools/call %s %s", tool_name, arguments)
        result = call_tool(get_image_manager(), tool_name, arguments)
        if not result.get("success"):
            return error_content(f"Error: {result.get('error', 'Unknown error')}")
        return format_result(result)
    except Exception as e:
        logger.exception("Tool %s failed", tool_name)
        return error_content(f"Error: {e}")


@app.route("/", methods=["POST"])
@app.route("/mcp", methods=["POST"])
def handle_request():
    """Handle MCP JSON-RPC requests"""
    request_id = None
    try:
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            return jsonify(create_json_rpc_error(None, -32700, "Parse error")), 400

        jsonrpc = data.get("jsonrpc")
        request_id = data.get("id")
        method = data.get("method") or ""
        params = data.get("params", {})

        if jsonrpc != "2.0":
            return jsonify(create_json_rpc_error(request_id, -32600, "Invalid JSON-RPC version")), 400

        # Notifications carry no id and get no response body
        if request_id is None and method.startswith("notifications/"):
            return "", 204

        if method == "initialize":
            result = handle_initialize(params)
        elif method == "tools/list":
            result = handle_tools_list(params)
        elif method == "tools/call":
            result = handle_tools_call(params)
        elif method == "ping":
            result = {}
        else:
            return jsonify(create_json_rpc_error(request_id, -32601, f"Method not found: {method}")), 400

        return jsonify(create_json_rpc_response(request_id, result))
    except Exception as e:
        logger.exception("Internal error handling request")
        return jsonify(create_json_rpc_error(request_id, -32603, f"Internal error: {str(e)}")), 500


@app.route("/health", methods=["GET"])
def health_check():
    """Health check endpoint"""
    return jsonify({"status": "healthy", "server": SERVER_INFO})


def main():
    """Main entry point"""
    parser = argparse.ArgumentParser(description="libvips MCP Server (HTTP)")
    parser.add_argument("--port", type=int, default=5001, help="Port to listen on (default: 5001)")
    parser.add_argument("--host", type=str, default="0.0.0.0", help="Host to bind to (default: 0.0.0.0)")
    parser.add_argument("--working-dir", type=str, default=None, help="Directory for relative image paths")
    parser.add_argument("--log-level", type=str, default="info", help="debug, info, warning or error")
    args = parser.parse_args()

    setup_logging(args.log_level)
    logger.info("Starting libvips MCP Server v%s", SERVER_INFO["version"])
    initialize_image_manager(working_dir=args.working_dir)

    logger.info("MCP endpoint: http://%s:%s/mcp", args.host, args.port)
    for tool in TOOLS:
        logger.debug("  - %s: %s", tool["name"], tool["description"])

    app.run(host=args.host, port=args.port, debug=False)


if __name__ == "__main__":
    main()
