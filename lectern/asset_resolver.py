"""Asset path resolver for Lectern.

Resolves asset names used in templates (``css_path('site')``) to URLs and
fails loudly when the file is missing.

Key classes:
- DefaultAssetPathResolver: Resolves asset paths for templates.
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path


class AssetNotFoundError(Exception):
    """Error raised when an asset file is not found.

    Attributes:
        asset_name: The name of the asset that was requested.
        asset_type: The type of asset (e.g., "image", "js", "css").
        searched_paths: List of paths that were searched.
    """

    def __init__(
        self,
        asset_name: str,
        asset_type: str,
        searched_paths: list[Path],
    ):
        self.asset_name = asset_name
        self.asset_type = asset_type
        self.searched_paths = searched_paths
        paths_str = ", ".join(str(p) for p in searched_paths)
        super().__init__(
            f"{asset_type} asset '{asset_name}' not found. Searched: {paths_str}"
        )


class DefaultAssetPathResolver:
    """Resolves asset names to URLs under ``/assets``.

    Attributes:
        assets_dir: Directory containing source assets.
    """

    IMAGE_EXTENSIONS = ("png", "jpg", "jpeg", "gif", "svg", "webp")

    # asset type -> (folder, extensions tried when the name has none)
    _KINDS = {
        "css": ("css", ("css",)),
        "js": ("js", ("js",)),
        "image": ("images", IMAGE_EXTENSIONS),
    }

    def __init__(
        self, assets_dir: Path, url_generator: Callable[[str], str] | None = None
    ):
        self.assets_dir = assets_dir
        self._url_generator = url_generator or (lambda x: x)

    def set_url_generator(self, url_generator: Callable[[str], str]) -> None:
        self._url_generator = url_generator

    def resolve(self, name: str, asset_type: str) -> str:
        """Resolve an asset name to its URL path.

        Args:
            name: Asset filename, with or without extension.
            asset_type: One of 'css', 'js', 'image'.

        Returns:
            URL path to the asset.

        Raises:
            AssetNotFoundError: If the asset doesn't exist.
            ValueError: For an unknown asset type.
        """
        found = self._find(name, asset_type)
        if isinstance(found, list):
            raise AssetNotFoundError(name, asset_type, found)
        return self._url_generator(found)

    def exists(self, name: str, asset_type: str) -> bool:
        return not isinstance(self._find(name, asset_type), list)

    def css_path(self, name: str) -> str:
        return self.resolve(name, "css")

    def js_path(self, name: str) -> str:
        return self.resolve(name, "js")

    def img_path(self, name: str) -> str:
        return self.resolve(name, "image")

    def _find(self, name: str, asset_type: str) -> str | list[Path]:
        """Return the asset URL, or the list of paths searched in vain."""
        if asset_type not in self._KINDS:
            raise ValueError(f"Unknown asset type: {asset_type}")
        folder, extensions = self._KINDS[asset_type]
        base = self.assets_dir / folder

        if any(name.endswith(f".{ext}") for ext in extensions):
            candidates = [name]
        else:
            candidates = [f"{name}.{ext}" for ext in extensions]

        searched: list[Path] = []
        for candidate in candidates:
            file_path = base / candidate
            searched.append(file_path)
            if file_path.exists():
                return f"/assets/{folder}/{candidate}"
        return searched
