import json
from typing import Tuple
from xml.sax.saxutils import escape, quoteattr

from yingge.schemas import SpritesheetInfo

DESCRIPTOR_EXTENSIONS = {
    "json": "json",
    "xml_unity": "xml",
    "plist_cocos2d": "plist",
}


def generate_json_descriptor(info: SpritesheetInfo, image_filename: str) -> str:
    """Generic JSON atlas (Godot / Phaser friendly)."""
    doc = {
        "image": image_filename,
        "size": {"w": info.width, "h": info.height},
        "frames": [
            {"name": f.name, "frame": {"x": f.x, "y": f.y, "w": f.width, "h": f.height}}
            for f in info.frames
        ],
    }
    return json.dumps(doc, indent=2, ensure_ascii=False)


def generate_unity_xml_descriptor(info: SpritesheetInfo, image_filename: str) -> str:
    lines = [
        '<?xml version="1.0" encoding="UTF-8"?>',
        f"<TextureAtlas imagePath={quoteattr(image_filename)} width=\"{info.width}\" height=\"{info.height}\">",
    ]
    for f in info.frames:
        lines.append(
            f"  <SubTexture name={quoteattr(f.name)} x=\"{f.x}\" y=\"{f.y}\" "
            f"width=\"{f.width}\" height=\"{f.height}\" />"
        )
    lines.append("</TextureAtlas>")
    return "\n".join(lines) + "\n"


def generate_cocos2d_plist_descriptor(info: SpritesheetInfo, image_filename: str) -> str:
    """Simplified Cocos2d property-list atlas; rects use the ``{{x,y},{w,h}}`` notation."""
    lines = [
        '<?xml version="1.0" encoding="UTF-8"?>',
        '<!DOCTYPE plist PUBLIC "-//Apple//DTD PLIST 1.0//EN" "http://www.apple.com/DTDs/PropertyList-1.0.dtd">',
        '<plist version="1.0">',
        "<dict>",
        "  <key>frames</key>",
        "  <dict>",
    ]
    for f in info.frames:
        lines += [
            f"    <key>{escape(f.name)}</key>",
            "    <dict>",
            "      <key>frame</key>",
            f"      <string>{{{{{f.x},{f.y}}},{{{f.width},{f.height}}}}}</string>",
            "      <key>sourceSize</key>",
            f"      <string>{{{f.width},{f.height}}}</string>",
            "    </dict>",
        ]
    lines += [
        "  </dict>",
        "  <key>metadata</key>",
        "  <dict>",
        "    <key>textureFileName</key>",
        f"    <string>{escape(image_filename)}</string>",
        "    <key>size</key>",
        f"    <string>{{{info.width},{info.height}}}</string>",
        "  </dict>",
        "</dict>",
        "</plist>",
    ]
    return "\n".join(lines) + "\n"


def render_descriptor(fmt: str, info: SpritesheetInfo, image_filename: str) -> Tuple[str, str]:
    """Render ``info`` in the requested format; unknown formats fall back to JSON.

    Returns ``(text, file_extension)``.
    """
    if fmt == "xml_unity":
        return generate_unity_xml_descriptor(info, image_filename), DESCRIPTOR_EXTENSIONS[fmt]
    if fmt == "plist_cocos2d":
        return generate_cocos2d_plist_descriptor(info, image_filename), DESCRIPTOR_EXTENSIONS[fmt]
    return generate_json_descriptor(info, image_filename), DESCRIPTOR_EXTENSIONS["json"]
