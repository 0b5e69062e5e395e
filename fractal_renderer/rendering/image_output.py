"""
Image export and format handling for fractal rendering.

This module writes finished image buffers to PNG, TIFF or JPEG files with
the render configuration embedded as metadata.
"""

import numpy as np
from typing import Any, Dict, Optional, Union
from pathlib import Path
from dataclasses import dataclass, asdict, field
import json
import logging
from datetime import datetime

from PIL import Image, PngImagePlugin

from .. import __version__
from .image_buffer import ImageBuffer

logger = logging.getLogger(__name__)

SOFTWARE_VERSION = __version__


@dataclass
class RenderMetadata:
    """Metadata for fractal renders."""

    # Fractal parameters
    algorithm: str
    resolution: tuple  # width, height
    config: Dict[str, Any] = field(default_factory=dict)

    # Rendering parameters
    backend: str = "auto"
    seed: Optional[int] = None

    # Timing and performance
    render_time_seconds: float = 0.0

    # Generation info
    timestamp: str = ""
    software_version: str = SOFTWARE_VERSION

    def __post_init__(self):
        """Set default timestamp if not provided."""
        if not self.timestamp:
            self.timestamp = datetime.now().isoformat()
        self.resolution = tuple(self.resolution)

    @classmethod
    def from_config(cls, config, backend: str = "auto", render_time: float = 0.0,
                    seed: Optional[int] = None) -> 'RenderMetadata':
        return cls(
            algorithm=config.algorithm.name,
            resolution=(config.width, config.height),
            config=config.to_dict(),
            backend=backend,
            seed=seed,
            render_time_seconds=render_time,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert metadata to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'RenderMetadata':
        """Create metadata from dictionary."""
        return cls(**data)

    def to_json(self, indent: int = 2) -> str:
        """Convert to JSON string."""
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_json(cls, json_str: str) -> 'RenderMetadata':
        """Create metadata from JSON string."""
        return cls.from_dict(json.loads(json_str))


class ImageExporter:
    """Image export with metadata support."""

    def __init__(self):
        """Initialize image exporter."""
        self.supported_formats = {
            '.png': self._save_png,
            '.tiff': self._save_tiff,
            '.tif': self._save_tiff,
            '.jpg': self._save_jpeg,
            '.jpeg': self._save_jpeg,
        }

    def save_image(self, image: Union[ImageBuffer, np.ndarray], filepath: Path,
                   metadata: Optional[RenderMetadata] = None, quality: int = 95) -> Path:
        """
        Save an image to file with metadata.

        Args:
            image: Image buffer or (H, W, 3) uint8 array
            filepath: Output file path
            metadata: Render metadata to embed
            quality: JPEG quality (1-100)

        Returns:
            Path written
        """
        filepath = Path(filepath)
        suffix = filepath.suffix.lower()

        if suffix not in self.supported_formats:
            supported = ', '.join(self.supported_formats.keys())
            raise ValueError(f"Unsupported format '{suffix}'. Supported: {supported}")

        image_array = self._prepare_image_array(image)
        pil_image = Image.fromarray(image_array)

        save_method = self.supported_formats[suffix]
        save_method(pil_image, filepath, metadata, quality)

        logger.info(f"Saved image: {filepath} ({pil_image.size[0]}x{pil_image.size[1]})")
        return filepath

    def _prepare_image_array(self, image: Union[ImageBuffer, np.ndarray]) -> np.ndarray:
        """Prepare and validate image array for export."""
        if isinstance(image, ImageBuffer):
            image_array = image.to_array()
        else:
            image_array = np.asarray(image)

        if image_array.ndim != 3 or image_array.shape[2] != 3:
            raise ValueError(f"Expected RGB image array (H, W, 3), got {image_array.shape}")

        if image_array.dtype != np.uint8:
            image_array = np.clip(image_array, 0, 255).astype(np.uint8)

        return np.ascontiguousarray(image_array)

    def _save_png(self, pil_image: Image.Image, filepath: Path,
                  metadata: Optional[RenderMetadata], quality: int) -> None:
        """Save as PNG with metadata."""
        pnginfo = PngImagePlugin.PngInfo()

        if metadata:
            pnginfo.add_text("Title", f"Fractal: {metadata.algorithm}")
            pnginfo.add_text("Software", f"fractal-renderer v{metadata.software_version}")
            pnginfo.add_text("Creation Time", metadata.timestamp)
            pnginfo.add_text("FractalMetadata", metadata.to_json())

        pil_image.save(filepath, "PNG", pnginfo=pnginfo)

    def _save_tiff(self, pil_image: Image.Image, filepath: Path,
                   metadata: Optional[RenderMetadata], quality: int) -> None:
        """Save as TIFF with metadata in the ImageDescription tag."""
        save_kwargs = {'format': 'TIFF'}
        if metadata:
            save_kwargs['description'] = metadata.to_json()
        pil_image.save(filepath, **save_kwargs)

    def _save_jpeg(self, pil_image: Image.Image, filepath: Path,
                   metadata: Optional[RenderMetadata], quality: int) -> None:
        """Save as JPEG with a companion JSON metadata file."""
        pil_image.save(filepath, "JPEG", quality=quality, optimize=True)

        if metadata:
            json_path = filepath.with_suffix('.json')
            with open(json_path, 'w') as f:
                f.write(metadata.to_json())
            logger.info(f"Saved metadata: {json_path}")

    def extract_metadata_from_image(self, filepath: Path) -> Optional[RenderMetadata]:
        """
        Extract fractal metadata from a saved image.

        Args:
            filepath: Path to image file

        Returns:
            Extracted metadata or None
        """
        filepath = Path(filepath)

        with Image.open(filepath) as img:
            text = getattr(img, 'text', None)
            if text and 'FractalMetadata' in text:
                return RenderMetadata.from_json(text['FractalMetadata'])

            tags = getattr(img, 'tag_v2', None)
            if tags is not None and 270 in tags:
                return RenderMetadata.from_json(tags[270])

        if filepath.suffix.lower() in ['.jpg', '.jpeg']:
            json_path = filepath.with_suffix('.json')
            if json_path.exists():
                with open(json_path, 'r') as f:
                    return RenderMetadata.from_json(f.read())

        return None
