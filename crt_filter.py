#!/usr/bin/env python3
"""
CRT-style 5x pixel scaler.

Every source pixel is expanded into a 5x5 block. Each cell of the block blends
the source pixel with the neighbor sitting at the cell's offset from the block
centre, using a weight that falls off with Manhattan distance. Lookups past the
image border are clamped to the nearest edge pixel.
"""
import logging
import os
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, replace

import numpy as np
from PIL import Image
from scipy import ndimage

logger = logging.getLogger('crt_filter')

SCALE = 5
RADIUS = SCALE // 2


@dataclass(frozen=True)
class BlendWeights:
    """
    Weight parameters for the blend.

    Values are not range-checked here; blend weights are clamped to [0, 1]
    when they are applied.
    """
    center_weight: float = 1.0
    immediate_neighbor_weight: float = 0.35
    diagonal_neighbor_weight: float = 0.25
    edge_blend_strength: float = 0.30
    global_blend_multiplier: float = 1.0

    def with_multiplier(self, multiplier):
        """Return a copy with a different global blend multiplier."""
        return replace(self, global_blend_multiplier=multiplier)


class CrtPixelScaler:
    def __init__(self, weights=None):
        self.weights = weights if weights is not None else BlendWeights()

    def get_blend_weight(self, offset_x, offset_y):
        """
        Look up the blend weight for a grid cell at the given offset from the centre.

        The axis-aligned far neighbors (+-2, 0) and (0, +-2) use the edge blend
        strength, while the true diagonals (+-1, +-1) share the same distance of 2
        but use the diagonal weight. The global multiplier scales every weight
        except the centre's.
        """
        w = self.weights
        dx = abs(offset_x)
        dy = abs(offset_y)
        distance = dx + dy

        if distance == 0:
            weight = w.center_weight
        elif distance == 1:
            weight = w.immediate_neighbor_weight
        elif distance == 2 and (dx == 2 or dy == 2):
            weight = w.edge_blend_strength
        elif distance == 2:
            weight = w.diagonal_neighbor_weight
        elif distance == 3:
            weight = w.diagonal_neighbor_weight * 0.5
        elif distance == 4:
            weight = w.diagonal_neighbor_weight * 0.25
        else:
            # Outside the 5x5 window
            weight = 0

        if distance > 0:
            weight *= w.global_blend_multiplier

        return weight

    @staticmethod
    def blend_pixels(center, neighbor, blend_weight):
        """
        Blend two colors, moving `blend_weight` of the way from center towards neighbor.

        Parameters:
        - center: RGB triple, or an (..., 3) array of them
        - neighbor: RGB triple or array with the same shape as center
        - blend_weight: fraction of the neighbor color to mix in, clamped to [0, 1]

        Returns:
        - uint8 array shaped like the inputs. Channels are truncated, not rounded.
        """
        blend_weight = min(max(float(blend_weight), 0.0), 1.0)
        center_weight = 1.0 - blend_weight

        blended = (np.asarray(center, dtype=np.float64) * center_weight
                   + np.asarray(neighbor, dtype=np.float64) * blend_weight)

        # Clip before the cast so values saturate instead of wrapping
        return np.clip(blended, 0, 255).astype(np.uint8)

    def create_pixel_grid(self, pixels, center_x, center_y):
        """
        Build the 5x5 block of output colors for one source pixel.

        Every cell blends the block's own centre pixel with the neighbor at that
        cell's offset. Neighbor coordinates are clamped to the image bounds, so
        pixels along the border blend with themselves past the edge.

        Returns:
        - (5, 5, 3) uint8 array indexed grid[py, px]
        """
        height, width = pixels.shape[:2]
        grid = np.empty((SCALE, SCALE, 3), dtype=np.uint8)
        center_pixel = pixels[center_y, center_x]

        for py in range(SCALE):
            for px in range(SCALE):
                offset_x = px - RADIUS
                offset_y = py - RADIUS

                neighbor_x = max(0, min(center_x + offset_x, width - 1))
                neighbor_y = max(0, min(center_y + offset_y, height - 1))

                neighbor_pixel = pixels[neighbor_y, neighbor_x]
                weight = self.get_blend_weight(offset_x, offset_y)
                grid[py, px] = self.blend_pixels(center_pixel, neighbor_pixel, weight)

        return grid

    @staticmethod
    def write_scaled_pixel(scaled, x, y, grid):
        """Copy a 5x5 grid into the output block that starts at (5x, 5y)."""
        start_x = x * SCALE
        start_y = y * SCALE
        scaled[start_y:start_y + SCALE, start_x:start_x + SCALE] = grid

    def scale_and_blur(self, pixels, workers=1):
        """
        Scale an image up 5x, softening each pixel into its neighbors.

        Instead of visiting source pixels one at a time, each of the 25 grid
        offsets is evaluated for the whole image at once: the source is shifted
        by the offset (edge pixels repeat past the border) and blended with the
        unshifted source. The result for offset (px, py) lands on every 5th
        output pixel starting at (px, py). Output is identical to
        scale_and_blur_per_pixel().

        Parameters:
        - pixels: (H, W, 3) uint8 array or PIL image
        - workers: number of threads used to fill the 25 offsets. Each offset
          writes a disjoint set of output pixels.

        Returns:
        - New (5H, 5W, 3) uint8 array. The input is not modified.
        """
        pixels = to_rgb_array(pixels)
        height, width = pixels.shape[:2]
        scaled = np.zeros((height * SCALE, width * SCALE, 3), dtype=np.uint8)

        if height == 0 or width == 0:
            return scaled

        logger.debug(f"Scaling {width}x{height} -> {width * SCALE}x{height * SCALE} "
                     f"with {self.weights} on {workers} worker(s)")

        cells = [(px, py) for py in range(SCALE) for px in range(SCALE)]

        if workers and workers > 1:
            with ThreadPoolExecutor(max_workers=workers) as executor:
                # list() so that worker exceptions are raised here
                list(executor.map(lambda cell: self._fill_offset(pixels, scaled, *cell), cells))
        else:
            for px, py in cells:
                self._fill_offset(pixels, scaled, px, py)

        logger.info(f"Scaled {width}x{height} image to {width * SCALE}x{height * SCALE}")
        return scaled

    def scale_and_blur_per_pixel(self, pixels):
        """Reference implementation: build and write one 5x5 grid per source pixel."""
        pixels = to_rgb_array(pixels)
        height, width = pixels.shape[:2]
        scaled = np.zeros((height * SCALE, width * SCALE, 3), dtype=np.uint8)

        for y in range(height):
            for x in range(width):
                grid = self.create_pixel_grid(pixels, x, y)
                self.write_scaled_pixel(scaled, x, y, grid)

        return scaled

    def scale_image(self, img, workers=1):
        """Scale a PIL image and return the result as a new RGB PIL image."""
        return Image.fromarray(self.scale_and_blur(img, workers=workers))

    def _fill_offset(self, pixels, scaled, px, py):
        offset_x = px - RADIUS
        offset_y = py - RADIUS

        # neighbors[y, x] == pixels[clamp(y + offset_y), clamp(x + offset_x)]
        neighbors = ndimage.shift(pixels, (-offset_y, -offset_x, 0), order=0, mode='nearest')

        weight = self.get_blend_weight(offset_x, offset_y)
        scaled[py::SCALE, px::SCALE] = self.blend_pixels(pixels, neighbors, weight)


def to_rgb_array(pixels):
    """Return an (H, W, 3) uint8 array from a PIL image or array-like."""
    if isinstance(pixels, Image.Image):
        return np.array(pixels.convert("RGB"))

    pixels = np.asarray(pixels, dtype=np.uint8)
    if pixels.ndim != 3 or pixels.shape[2] != 3:
        raise ValueError(f"Expected an (H, W, 3) RGB buffer, got shape {pixels.shape}")
    return pixels


def load_image(path):
    """Load an image file as an (H, W, 3) uint8 RGB array."""
    with Image.open(path) as img:
        return np.array(img.convert("RGB"))


def save_image(pixels, path):
    """Save an RGB array; the file format follows the path's extension."""
    Image.fromarray(np.asarray(pixels, dtype=np.uint8)).save(path)


def get_output_path(input_path, suffix="crt"):
    """Insert `_<suffix>` before the extension, e.g. sprite.png -> sprite_crt.png."""
    dir_name = os.path.dirname(input_path)
    name, ext = os.path.splitext(os.path.basename(input_path))
    return os.path.join(dir_name, f"{name}_{suffix}{ext}")
