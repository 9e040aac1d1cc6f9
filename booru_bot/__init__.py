"""
Booru upload bot.

Publishes images to a static gallery when the owner reacts to a Discord
message: the attachment is downloaded, uploaded over FTP together with a
compressed preview, and recorded in the gallery's JSON manifest.
"""

__version__ = "2.0.0"

from .cache import ensure_directories
from .config import Config, load_config
from .fetcher import Fetcher, fetch
from .manifest import Manifest, ManifestSynchronizer
from .pipeline import PublicationPipeline, PublicationResult, PublicationState
from .preview import JpegProfile, PngQuantProfile, PreviewGenerator, select_profile
from .transfer import TransferSession

__all__ = [
    "ensure_directories",
    "Config",
    "load_config",
    "Fetcher",
    "fetch",
    "Manifest",
    "ManifestSynchronizer",
    "PublicationPipeline",
    "PublicationResult",
    "PublicationState",
    "JpegProfile",
    "PngQuantProfile",
    "PreviewGenerator",
    "select_profile",
    "TransferSession",
]
