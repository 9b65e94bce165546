"""Protocol definitions for layout upload components."""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional, Protocol

from layoutuploader.core.models import PyramidMetadata

if TYPE_CHECKING:  # pragma: no cover - typing only
    from layoutuploader.pipeline.state import CancellationToken


class TileUploader(Protocol):
    """Interface for sending tiles to the layout service."""

    def upload_tile(
        self,
        layout_path: str,
        tile_key: str,
        payload: bytes,
        *,
        cancel_token: Optional["CancellationToken"] = None,
    ) -> None:
        """Upload one tile payload or raise an upload error."""

    def finalize(self, layout_path: str, metadata: PyramidMetadata) -> None:
        """Register the uploaded pyramid or raise :class:`FinalizeError`."""

    def close(self) -> None:
        """Release network resources."""
