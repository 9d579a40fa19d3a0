"""Static asset pipeline for Lectern.

Copies the project's ``assets/`` tree into ``<output>/assets``. Each file
goes through the first processor that claims it:

- ImageProcessor: Re-saves PNG, JPEG and WebP images with Pillow's optimizer.
- JSProcessor: Minifies JavaScript with rjsmin (``*.min.js`` is left alone).
- CopyProcessor: Copies everything else (CSS, fonts, SVG) unchanged.
"""

from __future__ import annotations

import shutil
from abc import ABC, abstractmethod
from pathlib import Path

from PIL import Image
from rjsmin import jsmin


class AssetProcessor(ABC):
    """Writes one kind of asset to the output directory.

    Processors with a higher ``priority`` are asked first.
    """

    priority = 0

    @abstractmethod
    def accepts(self, path: Path) -> bool:
        ...

    @abstractmethod
    def write(self, source: Path, dest: Path) -> None:
        ...


class ImageProcessor(AssetProcessor):
    """Optimizes raster images; files Pillow cannot read are copied as-is."""

    priority = 100
    extensions = {".png", ".jpg", ".jpeg", ".webp"}

    def accepts(self, path: Path) -> bool:
        return path.suffix.lower() in self.extensions

    def write(self, source: Path, dest: Path) -> None:
        try:
            with Image.open(source) as img:
                img.save(dest, optimize=True)
        except OSError as exc:
            print(f"Image optimization failed for {source.name} ({exc}); copying as-is.")
            shutil.copy2(source, dest)


class JSProcessor(AssetProcessor):
    priority = 80

    def accepts(self, path: Path) -> bool:
        return path.suffix.lower() == ".js" and not path.name.endswith(".min.js")

    def write(self, source: Path, dest: Path) -> None:
        dest.write_text(jsmin(source.read_text(encoding="utf-8")), encoding="utf-8")


class CopyProcessor(AssetProcessor):
    def accepts(self, path: Path) -> bool:
        return True

    def write(self, source: Path, dest: Path) -> None:
        shutil.copy2(source, dest)


DEFAULT_PROCESSORS = (ImageProcessor, JSProcessor, CopyProcessor)


class AssetPipeline:
    """Processes static assets for the site.

    Attributes:
        assets_dir (Path): Directory containing source assets.
        output_dir (Path): Build output; assets land in its ``assets/`` folder.
        processors (list[AssetProcessor]): Processors, highest priority first.
    """

    def __init__(
        self,
        project_root: Path,
        output_dir: Path,
        processors: list[AssetProcessor] | None = None,
    ):
        self.assets_dir = project_root / "assets"
        self.output_dir = output_dir
        chosen = processors if processors is not None else [cls() for cls in DEFAULT_PROCESSORS]
        self.processors = sorted(chosen, key=lambda p: p.priority, reverse=True)

    def processor_for(self, path: Path) -> AssetProcessor | None:
        return next((p for p in self.processors if p.accepts(path)), None)

    def run(self) -> list[Path]:
        """Process every asset file and return the paths written."""
        if not self.assets_dir.exists():
            return []

        target = self.output_dir / "assets"
        written: list[Path] = []
        for item in sorted(self.assets_dir.rglob("*")):
            if item.is_dir():
                continue
            processor = self.processor_for(item)
            if processor is None:
                continue
            dest = target / item.relative_to(self.assets_dir)
            dest.parent.mkdir(parents=True, exist_ok=True)
            processor.write(item, dest)
            written.append(dest)
        return written
