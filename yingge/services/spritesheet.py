"""
Spritesheet packing and grid splitting.

Packing places every frame in a fixed grid cell sized to the largest frame; unused
cell space stays transparent. Splitting cuts an image into equal cells and drops
the right/bottom remainder.
"""
from typing import List, Sequence, Tuple

from PIL import Image

from yingge.errors import InvalidInput
from yingge.schemas import SpriteFrame, SpritesheetInfo


def grid_shape(count: int, columns: int) -> Tuple[int, int]:
    cols = max(columns, 1)
    rows = (count + cols - 1) // cols
    return cols, rows


def merge_spritesheet(images: Sequence[Tuple[str, Image.Image]], columns: int,
                      padding: int = 0) -> Tuple[Image.Image, SpritesheetInfo]:
    """Pack ``(name, image)`` pairs row-major into one RGBA sheet.

    Returns the sheet and its geometry; frame order follows input order and each
    frame records its source image's own size.
    """
    if not images:
        raise InvalidInput("No images provided", where="spritesheet.merge")
    if padding < 0:
        raise InvalidInput(f"Padding must not be negative, got {padding}", where="spritesheet.merge")

    max_w = max(img.width for _, img in images)
    max_h = max(img.height for _, img in images)
    cols, rows = grid_shape(len(images), columns)

    sheet_w = cols * (max_w + padding) - padding
    sheet_h = rows * (max_h + padding) - padding
    sheet = Image.new("RGBA", (sheet_w, sheet_h), (0, 0, 0, 0))

    frames: List[SpriteFrame] = []
    for i, (name, img) in enumerate(images):
        col, row = i % cols, i // cols
        x = col * (max_w + padding)
        y = row * (max_h + padding)
        # frame pixels replace the cell verbatim, alpha included
        sheet.paste(img.convert("RGBA"), (x, y))
        frames.append(SpriteFrame(name=name, x=x, y=y, width=img.width, height=img.height))

    return sheet, SpritesheetInfo(width=sheet_w, height=sheet_h, frames=frames)


def split_image_grid(img: Image.Image, rows: int, cols: int) -> List[Image.Image]:
    if rows <= 0 or cols <= 0:
        raise InvalidInput(f"Rows and cols must be positive, got {rows}x{cols}", where="spritesheet.split")

    cell_w = img.width // cols
    cell_h = img.height // rows
    if cell_w == 0 or cell_h == 0:
        raise InvalidInput(
            f"A {img.width}x{img.height} image cannot be split into {rows}x{cols} cells",
            where="spritesheet.split",
        )

    return [
        img.crop((col * cell_w, row * cell_h, (col + 1) * cell_w, (row + 1) * cell_h))
        for row in range(rows)
        for col in range(cols)
    ]
