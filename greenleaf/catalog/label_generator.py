"""
Shelf label rendering for products.
Draws a Code128 barcode of the SKU with the product name and price using
python-barcode and Pillow, entirely in memory.
"""
import io
import base64
import logging
from typing import Optional

import barcode
from barcode.writer import ImageWriter
from PIL import Image, ImageDraw, ImageFont

logger = logging.getLogger(__name__)

FONT_CANDIDATES = (
    '/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf',
    'arial.ttf',
)


def _load_font(size: int):
    for path in FONT_CANDIDATES:
        try:
            return ImageFont.truetype(path, size)
        except (OSError, IOError):
            continue
    return ImageFont.load_default()


def _draw_centered(draw, y, text, font, width):
    bbox = draw.textbbox((0, 0), text, font=font)
    x = (width - (bbox[2] - bbox[0])) // 2
    draw.text((x, y), text, fill='black', font=font)
    return bbox[3] - bbox[1]


def render_barcode(value: str, max_width: int, max_height: int):
    """Code128 barcode image for value, scaled to fit the box"""
    code128 = barcode.get_barcode_class('code128')
    barcode_img = code128(value, writer=ImageWriter()).render({
        'write_text': False,
        'module_width': 0.3,
        'module_height': 15.0,
        'quiet_zone': 2.0,
        'background': 'white',
        'foreground': 'black',
    })
    img_width, img_height = barcode_img.size
    scale = min(max_width / img_width, max_height / img_height)
    return barcode_img.resize((max(1, int(img_width * scale)), max(1, int(img_height * scale))),
                              Image.Resampling.BILINEAR)


def generate_label_image(
    product_name: str,
    sku: str,
    price: Optional[str] = None,
    vendor_name: Optional[str] = None,
    strain_type: Optional[str] = None,
    width: int = 400,  # 4 inches at 100 DPI
    height: int = 200,  # 2 inches at 100 DPI
) -> str:
    """
    Render a product shelf label.

    Layout, top to bottom: vendor name, barcode of the SKU, SKU text,
    product name with strain type, price.

    Returns:
        Base64-encoded PNG image as data URL string
    """
    if len(product_name) > 32:
        product_name = product_name[:32] + '...'

    img = Image.new('RGB', (width, height), color='white')
    draw = ImageDraw.Draw(img)
    font_large = _load_font(18)
    font_medium = _load_font(14)
    font_small = _load_font(12)

    margin = 10
    y = 6
    if vendor_name:
        y += _draw_centered(draw, y, vendor_name[:30], font_small, width) + 4

    barcode_box_height = height - y - 70
    try:
        barcode_img = render_barcode(sku, width - 2 * margin, barcode_box_height)
        img.paste(barcode_img, ((width - barcode_img.width) // 2, y))
        y += barcode_img.height + 3
    except Exception as e:
        # Unencodable SKUs still get a readable label
        logger.error(f"Barcode generation failed for '{sku}': {str(e)}")
        y += _draw_centered(draw, y, f'SKU: {sku}', font_medium, width) + 4

    y += _draw_centered(draw, y, sku, font_small, width) + 4

    name_line = product_name
    if strain_type:
        name_line += f" ({strain_type.title()})"
    y += _draw_centered(draw, y, name_line, font_medium, width) + 4

    if price is not None:
        _draw_centered(draw, y, price, font_large, width)

    buffer = io.BytesIO()
    img.save(buffer, format='PNG', optimize=False, compress_level=1)
    image_base64 = base64.b64encode(buffer.getvalue()).decode('utf-8')
    buffer.close()
    img.close()

    return f'data:image/png;base64,{image_base64}'
