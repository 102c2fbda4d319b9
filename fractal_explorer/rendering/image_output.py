"""
Image export for rendered frames.

Frames are written as PNG (render metadata embedded in text chunks), TIFF,
or raw NumPy data with a companion JSON metadata file.
"""

import numpy as np
from typing import Dict, Any, Optional, Tuple, Union
from pathlib import Path
from dataclasses import dataclass, asdict, field
import json
import logging
import time
from datetime import datetime

from PIL import Image, PngImagePlugin

from .frame import PixelBuffer

logger = logging.getLogger(__name__)

SOFTWARE_VERSION = "1.0.0"


@dataclass
class RenderMetadata:
    """Metadata for fractal renders."""

    # Fractal parameters
    variant: str
    resolution: Tuple[int, int]  # width, height
    iteration_cap: int
    color_scheme: str

    # View
    zoom_factor: float
    center: Tuple[float, float]  # real, imag

    # Timing
    render_time_seconds: float = 0.0
    backend: str = ""

    # Generation info
    timestamp: str = ""
    software_version: str = SOFTWARE_VERSION

    # Julia constant, when relevant
    fractal_parameters: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        """Set default timestamp if not provided."""
        if not self.timestamp:
            self.timestamp = datetime.now().isoformat()
        self.resolution = tuple(self.resolution)
        self.center = tuple(self.center)

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


def default_filename(variant: str, timestamp_ms: Optional[int] = None) -> str:
    """Export file name of the form fractal-<variant>-<milliseconds>.png."""
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)
    return f"fractal-{variant}-{timestamp_ms}.png"


class ImageExporter:
    """Image export with metadata support."""

    def __init__(self):
        self.supported_formats = {
            '.png': self._save_png,
            '.tiff': self._save_tiff,
            '.tif': self._save_tiff,
        }

    def check_format(self, filepath: Path) -> str:
        """Return the lower-cased suffix of filepath, or raise ValueError if it has no writer."""
        suffix = Path(filepath).suffix.lower()
        if suffix not in self.supported_formats:
            supported = ', '.join(self.supported_formats.keys())
            raise ValueError(f"Unsupported format '{suffix}'. Supported: {supported}")
        return suffix

    def save_image(self, frame: Union[PixelBuffer, np.ndarray], filepath: Path,
                   metadata: Optional[RenderMetadata] = None,
                   compression: Optional[str] = None) -> Path:
        """
        Save an RGBA frame to file with metadata.

        Args:
            frame: PixelBuffer or uint8 array of shape (H, W, 4)
            filepath: Output file path; the suffix selects the format
            metadata: Render metadata to embed
            compression: 'none', 'fast' or 'max'

        Returns:
            The path written
        """
        filepath = Path(filepath)
        suffix = self.check_format(filepath)

        pil_image = self._to_pil(frame)
        filepath.parent.mkdir(parents=True, exist_ok=True)
        self.supported_formats[suffix](pil_image, filepath, metadata, compression)

        logger.info(f"Saved image: {filepath} ({pil_image.size[0]}x{pil_image.size[1]})")
        return filepath

    def _to_pil(self, frame: Union[PixelBuffer, np.ndarray]) -> Image.Image:
        if isinstance(frame, PixelBuffer):
            return frame.to_image()
        return PixelBuffer(np.asarray(frame)).to_image()

    def _save_png(self, pil_image: Image.Image, filepath: Path,
                  metadata: Optional[RenderMetadata], compression: Optional[str]) -> None:
        """Save as PNG with metadata."""
        pnginfo = PngImagePlugin.PngInfo()

        if metadata:
            pnginfo.add_text("Title", f"Fractal: {metadata.variant}")
            pnginfo.add_text("Software", f"fractal-explorer v{metadata.software_version}")
            pnginfo.add_text("Creation Time", metadata.timestamp)
            pnginfo.add_text("FractalMetadata", metadata.to_json())

        # 0 (no compression) to 9 (max compression)
        compress_level = 6
        if compression:
            if compression.lower() in ['none', '0']:
                compress_level = 0
            elif compression.lower() in ['fast', 'low']:
                compress_level = 1
            elif compression.lower() in ['high', 'max']:
                compress_level = 9

        pil_image.save(filepath, "PNG", pnginfo=pnginfo, compress_level=compress_level)

    def _save_tiff(self, pil_image: Image.Image, filepath: Path,
                   metadata: Optional[RenderMetadata], compression: Optional[str]) -> None:
        """Save as TIFF; metadata goes into the ImageDescription tag."""
        save_kwargs = {'format': 'TIFF'}
        if compression is None or compression.lower() != 'none':
            save_kwargs['compression'] = 'tiff_lzw'
        if metadata:
            save_kwargs['description'] = metadata.to_json()
            save_kwargs['software'] = f"fractal-explorer v{metadata.software_version}"

        pil_image.save(filepath, **save_kwargs)

    def save_raw_data(self, frame: Union[PixelBuffer, np.ndarray], filepath: Path,
                      metadata: Optional[RenderMetadata] = None) -> Path:
        """
        Save the raw RGBA array as a NumPy .npy file.

        Args:
            frame: Frame to save
            filepath: Output file path (.npy)
            metadata: Metadata saved alongside as .json

        Returns:
            The .npy path written
        """
        filepath = Path(filepath)
        if filepath.suffix.lower() != '.npy':
            filepath = filepath.with_suffix('.npy')

        data = frame.data if isinstance(frame, PixelBuffer) else np.asarray(frame)
        np.save(filepath, data)

        if metadata:
            metadata_path = filepath.with_suffix('.json')
            with open(metadata_path, 'w') as f:
                f.write(metadata.to_json())

        logger.info(f"Saved raw data: {filepath}")
        return filepath

    def load_raw_data(self, filepath: Path) -> Tuple[PixelBuffer, Optional[RenderMetadata]]:
        """
        Load raw frame data and metadata.

        Args:
            filepath: Input file path (.npy)

        Returns:
            Tuple of (frame, metadata)
        """
        filepath = Path(filepath)
        frame = PixelBuffer(np.load(filepath))

        metadata = None
        metadata_path = filepath.with_suffix('.json')
        if metadata_path.exists():
            with open(metadata_path, 'r') as f:
                metadata = RenderMetadata.from_json(f.read())

        return frame, metadata

    def extract_metadata_from_image(self, filepath: Path) -> Optional[RenderMetadata]:
        """
        Extract fractal metadata from a saved image.

        Args:
            filepath: Path to image file

        Returns:
            Extracted metadata or None
        """
        with Image.open(filepath) as img:
            text = getattr(img, 'text', {})
            if 'FractalMetadata' in text:
                return RenderMetadata.from_json(text['FractalMetadata'])

            tags = getattr(img, 'tag_v2', {})
            # 270 = ImageDescription
            if 270 in tags:
                try:
                    return RenderMetadata.from_json(tags[270])
                except (ValueError, TypeError) as e:
                    logger.warning(f"Could not parse metadata from {filepath}: {e}")

        return None
