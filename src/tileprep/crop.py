from __future__ import annotations

from src.utils import image_hw, progress
from .errors import ConfigError
from .manifest import Manifest
from .raster_io import load_image, save_image
from .window import Window


class FinalCropper:
    """
    Center-crops every manifest image to final_size x final_size and overwrites it in place.
    Images already at the final size are left untouched, so re-running is harmless.
    """

    def __init__(self, final_size: int) -> None:
        if int(final_size) <= 0:
            raise ConfigError(f"final_size must be positive, got {final_size}")
        self.final_size = int(final_size)

    def run(self, manifest: Manifest) -> int:
        n = len(manifest)
        cropped = 0
        for i, entry in enumerate(manifest):
            path = manifest.abs_path(entry)
            image = load_image(path)
            H, W = image_hw(image)
            if (W, H) != (self.final_size, self.final_size):
                if W < self.final_size or H < self.final_size:
                    raise ConfigError(f"{entry.path} is {W}x{H}, smaller than final size {self.final_size}")
                win = Window.centered(W, H, self.final_size, self.final_size)
                save_image(path, win.crop(image))
                cropped += 1
            progress(i + 1, n)
        return cropped


def crop_to_final(manifest: Manifest, final_size: int) -> int:
    print(f"[CROP] {len(manifest)} images → {final_size}x{final_size}")
    cropped = FinalCropper(final_size).run(manifest)
    print(f"[OK] {cropped} images cropped, {len(manifest) - cropped} already at final size")
    return cropped
