from jsonschema import Draft7Validator

from vips_mcp_server.tools import BLEND_MODES, TOOLS, TOOLS_BY_NAME, tool_descriptors


def test_catalog_has_every_operation():
    names = [tool["name"] for tool in TOOLS]
    assert len(names) == 30
    assert len(set(names)) == len(names)
    for expected in ("image_info", "image_resize", "image_morphology", "image_fft",
                     "image_custom_convolution", "image_draw_line", "image_create_pyramid",
                     "create_solid_color"):
        assert expected in TOOLS_BY_NAME


def test_schemas_are_valid_json_schema():
    for tool in TOOLS:
        Draft7Validator.check_schema(tool["inputSchema"])
        assert tool["description"]


def test_required_fields_are_declared():
    for tool in TOOLS:
        schema = tool["inputSchema"]
        assert schema["type"] == "object"
        for field in schema["required"]:
            assert field in schema["properties"], f"{tool['name']} requires undeclared {field}"


def test_defaults_match_documented_values():
    props = TOOLS_BY_NAME["image_resize"]["inputSchema"]["properties"]
    assert props["fit"]["default"] == "cover"
    assert props["maintain_aspect_ratio"]["default"] is True
    assert TOOLS_BY_NAME["image_blur"]["inputSchema"]["properties"]["sigma"]["minimum"] == 0.3
    assert TOOLS_BY_NAME["image_flood_fill"]["inputSchema"]["properties"]["fill_color"]["default"] == "#FF0000"


def test_composite_offers_libvips_blend_modes():
    blend = TOOLS_BY_NAME["image_composite"]["inputSchema"]["properties"]["blend"]
    assert blend["enum"] == list(BLEND_MODES)
    assert len(BLEND_MODES) == 23


def test_descriptors_handed_out_are_copies():
    listed = tool_descriptors()
    listed[1]["inputSchema"]["properties"]["input_path"]["type"] = "integer"
    listed.clear()
    assert len(TOOLS) == 30
    resize = TOOLS_BY_NAME["image_resize"]["inputSchema"]["properties"]
    assert resize["input_path"]["type"] == "string"


def test_path_properties_are_not_shared():
    blur = TOOLS_BY_NAME["image_blur"]["inputSchema"]["properties"]["input_path"]
    crop = TOOLS_BY_NAME["image_crop"]["inputSchema"]["properties"]["input_path"]
    assert blur == crop
    assert blur is not crop


def test_pixel_counts_are_integers():
    resize = TOOLS_BY_NAME["image_resize"]["inputSchema"]["properties"]
    assert resize["width"] == {"type": "integer", "minimum": 1, "description": "Target width in pixels"}
    for name, field in [("image_crop", "x"), ("image_thumbnail", "size"), ("create_solid_color", "height"),
                        ("image_morphology", "kernel_size"), ("image_draw_circle", "radius"),
                        ("image_create_pyramid", "levels"), ("image_histogram", "bins")]:
        assert TOOLS_BY_NAME[name]["inputSchema"]["properties"][field]["type"] == "integer"
