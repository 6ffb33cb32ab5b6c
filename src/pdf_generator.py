import html
import logging
import os
from datetime import datetime
from pathlib import Path
from typing import List, Dict, Any, Optional, Tuple, Union
from weasyprint import HTML
from weasyprint.text.fonts import FontConfiguration
from PIL import Image, UnidentifiedImageError
from tqdm import tqdm

try:
    from .exceptions import PDFWriteError
    from .utils import list_screenshots, format_file_size
except ImportError:
    from exceptions import PDFWriteError
    from utils import list_screenshots, format_file_size


def page_size_points(width: int, height: int, scale: float) -> Tuple[float, float]:
    """PDF page size in points for an image of width x height pixels."""
    return width * scale, height * scale


class ScreenshotPDFGenerator:
    def __init__(self, config: Dict[str, Any]):
        self.config = config
        self.pdf_config = config['pdf']
        self.logger = logging.getLogger(__name__)
        self.font_config = FontConfiguration()

    @property
    def scale(self) -> float:
        """Points per image pixel, 300/72 by default."""
        return float(self.pdf_config.get('dpi', 300)) / float(self.pdf_config.get('base_dpi', 72))

    def _default_output_path(self) -> str:
        return os.path.join(self.pdf_config['output_dir'], self.pdf_config['output_filename'])

    def _collect_pages(self, files: List[Path]) -> List[Tuple[Path, Tuple[float, float]]]:
        """Read each image header and compute its page size; unreadable files are skipped."""
        pages = []
        for path in tqdm(files, desc="Reading screenshots", unit="images"):
            try:
                with Image.open(path) as img:
                    width, height = img.size
            except (OSError, UnidentifiedImageError) as e:
                self.logger.warning(f"Skipping unreadable image {path.name}: {e}")
                continue

            self.logger.info(f"Adding {path.name} to PDF ({width}x{height}px)")
            pages.append((path, page_size_points(width, height, self.scale)))
        return pages

    def _generate_html_content(self, pages: List[Tuple[Path, Tuple[float, float]]]) -> str:
        """One named @page rule and one full-bleed image per screenshot."""
        title = html.escape(self.pdf_config.get('title', 'Screenshots'))
        author = html.escape(self.pdf_config.get('author', 'screenshot2pdf'))
        created = datetime.now().strftime("%Y-%m-%dT%H:%M:%S")

        page_rules = []
        page_blocks = []
        for number, (path, (width_pt, height_pt)) in enumerate(pages, 1):
            page_rules.append(
                f"@page shot-{number} {{ size: {width_pt:.2f}pt {height_pt:.2f}pt; margin: 0; }}\n"
                f".shot-{number} {{ page: shot-{number}; width: {width_pt:.2f}pt; height: {height_pt:.2f}pt; }}"
            )
            page_blocks.append(
                f'<div class="shot shot-{number}">'
                f'<img src="{html.escape(path.resolve().as_uri(), quote=True)}" '
                f'style="width: {width_pt:.2f}pt; height: {height_pt:.2f}pt;" '
                f'alt="{html.escape(path.name, quote=True)}"></div>'
            )

        styles = "\n".join(page_rules)
        body = "\n".join(page_blocks)

        return f"""<!DOCTYPE html>
<html>
<head>
    <meta charset="UTF-8">
    <title>{title}</title>
    <meta name="author" content="{author}">
    <meta name="generator" content="screenshot2pdf">
    <meta name="dcterms.created" content="{created}">
    <style>
        @page {{ margin: 0; }}
        html, body {{ margin: 0; padding: 0; }}
        .shot {{ overflow: hidden; break-after: page; }}
        .shot:last-child {{ break-after: auto; }}
        .shot img {{ display: block; margin: 0; padding: 0; border: 0; }}
{styles}
    </style>
</head>
<body>
{body}
</body>
</html>
"""

    def generate_pdf(self, screenshots_dir: Optional[Union[str, Path]] = None,
                     output_path: Optional[str] = None) -> Optional[str]:
        """Assemble the numbered screenshots in screenshots_dir into one PDF.

        Returns the output path, or None when there is nothing to assemble.
        Raises PDFWriteError if the document cannot be written.
        """
        screenshots_dir = Path(screenshots_dir or self.config['directories']['screenshots_dir'])
        output_path = output_path or self._default_output_path()

        files = list_screenshots(screenshots_dir)
        if not files:
            self.logger.info(f"No screenshot images found in {screenshots_dir}")
            return None

        self.logger.info(f"Found {len(files)} screenshot images to include in the PDF")

        pages = self._collect_pages(files)
        if not pages:
            self.logger.warning("None of the screenshot images could be read")
            return None

        html_content = self._generate_html_content(pages)
        uncompressed = not self.pdf_config.get('compress', False)

        output_dir = os.path.dirname(output_path)
        if output_dir:
            os.makedirs(output_dir, exist_ok=True)

        self.logger.info(f"Converting to PDF: {output_path}")
        try:
            document = HTML(string=html_content, base_url=str(screenshots_dir.resolve()))
            with open(output_path, 'wb') as pdf_file:
                document.write_pdf(pdf_file, font_config=self.font_config, uncompressed_pdf=uncompressed)
        except Exception as e:
            self.logger.error(f"Error writing PDF {output_path}: {e}")
            raise PDFWriteError(f"Could not write PDF {output_path}: {e}") from e

        file_size = os.path.getsize(output_path)
        if file_size == 0:
            raise PDFWriteError(f"PDF written to {output_path} is empty")

        self.logger.info(f"PDF created successfully: {output_path} "
                         f"({len(pages)} pages, {format_file_size(file_size)})")
        return output_path
