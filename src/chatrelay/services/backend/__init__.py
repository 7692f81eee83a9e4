"""Backend client entrypoints and exports."""

from chatrelay.services.backend.client import BackendClient, ChunkStream
from chatrelay.services.backend.decoder import select_decoder

__all__ = ["BackendClient", "ChunkStream", "select_decoder"]
