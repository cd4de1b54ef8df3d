import logging
from typing import Any, Dict, Optional

import yt_dlp
from yt_dlp.utils import DownloadError

from playdeck.domain.entities import RawPlaylist
from playdeck.domain.errors import ProviderError
from playdeck.domain.ports import MetadataProvider


logger = logging.getLogger(__name__)


class YtDlpMetadataProvider(MetadataProvider):
    """MetadataProvider adapter backed by yt-dlp.

    Reads a playlist as a flat listing: no per-entry extraction and no download.
    Entries that fail to extract are skipped by yt-dlp rather than failing the
    whole playlist.
    """

    def __init__(self, socket_timeout: int = 30, extra_options: Optional[Dict[str, Any]] = None):
        """Initialize the provider.

        Args:
            socket_timeout: Network timeout passed to yt-dlp in seconds
            extra_options: Additional YoutubeDL options merged over the defaults
        """
        self._options: Dict[str, Any] = {
            'quiet': True,
            'no_warnings': True,
            'extract_flat': 'in_playlist',
            'skip_download': True,
            'ignoreerrors': True,
            'socket_timeout': socket_timeout,
        }
        if extra_options:
            self._options.update(extra_options)

    def resolve(self, url: str) -> RawPlaylist:
        """Return the playlist title and raw entry dicts for url.

        Raises:
            ProviderError: when yt-dlp cannot read the playlist at all
        """
        try:
            with yt_dlp.YoutubeDL(dict(self._options)) as ydl:
                info = ydl.extract_info(url, download=False)
        except DownloadError as e:
            raise ProviderError(f"yt-dlp could not read {url}: {e}") from e
        except Exception as e:
            raise ProviderError(f"Unexpected yt-dlp failure for {url}: {e}") from e

        if not isinstance(info, dict):
            # ignoreerrors turns a top-level failure into a None result
            raise ProviderError(f"yt-dlp returned no metadata for {url}")

        entries = info.get('entries')
        if entries is None:
            entries = []
        else:
            entries = [entry for entry in entries if isinstance(entry, dict)]

        logger.debug(f"yt-dlp listed {len(entries)} entries for {url}")
        return RawPlaylist(title=info.get('title'), entries=entries)
