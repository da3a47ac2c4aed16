"""Bot catalog service module"""

from app.services.bots.bot_service import BotService, bot_service
from app.services.bots.manifest import BotManifest, fetch_manifest, normalize_repo, parse_manifest

__all__ = [
    "BotService",
    "bot_service",
    "BotManifest",
    "fetch_manifest",
    "normalize_repo",
    "parse_manifest",
]
