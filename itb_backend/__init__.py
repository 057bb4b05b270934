"""
Image Toolbox metadata engine backend.

`extract_metadata` is the single entry point collaborators need: it turns the
best metadata chunk of an image into a canonical ``dict[str, str]``.
"""
from .features.metadata.service import MetadataEngine, extract_from_chunks, extract_metadata

__all__ = ["MetadataEngine", "extract_metadata", "extract_from_chunks"]
