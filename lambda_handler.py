"""
AWS Lambda entry point for the libvips MCP Server

Translates API Gateway (HTTP API v2 and REST API v1) events and direct
invocations into requests against the Flask app.
"""
import base64
import json
import os

from vips_mcp_server import server as server_module
from vips_mcp_server.log import get_logger, setup_logging
from vips_mcp_server.server import app

setup_logging()
logger = get_logger("lambda")

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "*",
    "Access-Control-Allow-Methods": "*",
}

# The manager survives between invocations of a warm container
if server_module.image_manager is None:
    logger.info("Cold start: creating image manager")
    server_module.initialize_image_manager(
        working_dir=os.environ.get("IMAGE_WORKING_DIR", "/tmp/images"),
        s3_bucket=os.environ.get("S3_BUCKET")
    )


def handler(event, context):
    """Lambda handler for API Gateway events and direct JSON-RPC invocations"""
    logger.info("Invocation %s", getattr(context, "aws_request_id", None))
    request_context = event.get("requestContext")

    if request_context is None:
        # direct invocation: the event itself is the JSON-RPC message
        return dispatch("POST", "/mcp", {"Content-Type": "application/json"}, json.dumps(event), context)

    if "http" in request_context:
        method = request_context["http"]["method"]
        path = request_context["http"]["path"]
    else:
        method = event.get("httpMethod", "POST")
        path = event.get("path", "/")
    return dispatch(method, path, event.get("headers") or {}, _event_body(event), context)


def _event_body(event):
    body = event.get("body") or ""
    if event.get("isBase64Encoded"):
        return base64.b64decode(body).decode("utf-8")
    return body


def _api_response(status_code, body, content_type="application/json", extra_headers=None):
    headers = {"Content-Type": content_type, **CORS_HEADERS}
    headers.update(extra_headers or {})
    return {"statusCode": status_code, "headers": headers, "body": body}


def health(context):
    remaining = None
    if hasattr(context, "get_remaining_time_in_millis"):
        remaining = context.get_remaining_time_in_millis()
    return _api_response(200, json.dumps({
        "status": "healthy",
        "runtime": "lambda",
        "server": server_module.SERVER_INFO,
        "requestId": getattr(context, "aws_request_id", None),
        "memoryLimit": getattr(context, "memory_limit_in_mb", None),
        "remainingTime": remaining,
    }))


def dispatch(method, path, headers, body, context):
    """Run one request through the Flask app and shape the API Gateway response"""
    if method == "GET" and path == "/health":
        return health(context)

    content_type = headers.get("content-type") or headers.get("Content-Type") or "application/json"
    try:
        with app.test_request_context(path=path, method=method, headers=headers,
                                      data=body, content_type=content_type):
            response = app.full_dispatch_request()
    except Exception as e:
        logger.exception("Request to %s failed", path)
        error = server_module.create_json_rpc_error(None, -32603, f"Internal error: {e}")
        return _api_response(500, json.dumps(error))

    passthrough = {
        key: value for key, value in response.headers
        if key.lower() not in ("content-type", "content-length")
    }
    return _api_response(response.status_code, response.get_data(as_text=True),
                         response.content_type, passthrough)
