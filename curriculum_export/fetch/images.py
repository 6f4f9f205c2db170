"""
Remote image localization for rendered Markdown.

Every ``![alt](https://...)`` reference is downloaded once into an
``images/`` directory beside the Markdown file and rewritten to a URL under
the public base URL. Failed downloads keep the original remote URL.
"""

from __future__ import annotations

import hashlib
import logging
import os
from pathlib import Path, PurePosixPath
import re
from urllib.parse import unquote, urljoin, urlparse

import httpx

from ..config import ImagesConfig
from ..core.errors import ImageDownloadError
from ..core.slug import slugify
from ..utils.files import write_bytes_atomic
from ..utils.logging import log_event


IMAGE_RE = re.compile(r"!\[([^\]]*)\]\((https://[^)\s]+)\)")
REDIRECT_STATUSES = (301, 302)


def image_filename(url: str, default_extension: str = ".png") -> str:
    """Derive a safe local filename from an image URL.

    The last path segment is used without its query string. Base name and
    extension are both slugified, the extension keeping its case
    (``default_extension`` if nothing survives).

    Raises:
        ValueError: If the URL cannot be parsed

    Example:
        >>> image_filename("https://files.example.com/a/My%20Diagram.PNG?X-Amz=1")
        'my-diagram.PNG'
    """
    segment = PurePosixPath(unquote(urlparse(url).path)).name
    base, ext = os.path.splitext(segment)
    safe_ext = slugify(ext[1:], lower=False, fallback="")
    if safe_ext:
        ext = f".{safe_ext}"
    else:
        base, ext = segment, default_extension
    fallback = f"image-{hashlib.sha1(url.encode('utf-8')).hexdigest()[:10]}"
    return f"{slugify(base, fallback=fallback)}{ext}"


class ImageLocalizer:
    """Downloads remote images for one export run.

    Attributes:
        target_dir: Export root; rewritten links are relative to it
        public_base_url: Prefix for rewritten image links
    """

    def __init__(
        self,
        target_dir: Path,
        public_base_url: str,
        auth_token: str | None,
        http_client: httpx.AsyncClient,
        cfg: ImagesConfig | None = None,
        logger: logging.Logger | None = None,
    ):
        self.target_dir = target_dir
        self.public_base_url = public_base_url.rstrip("/")
        self._auth_token = auth_token
        self._http = http_client
        self._cfg = cfg or ImagesConfig()
        self._logger = logger or logging.getLogger("curriculum_export")

    async def localize(self, markdown: str, file_dir: Path) -> str:
        """Download referenced images and return Markdown with rewritten links."""
        if not self._cfg.enabled:
            return markdown
        urls = list(dict.fromkeys(match.group(2) for match in IMAGE_RE.finditer(markdown)))
        if not urls:
            return markdown

        images_dir = file_dir / self._cfg.dir_name

        rewritten: dict[str, str] = {}
        for url in urls:
            try:
                dest = images_dir / image_filename(url, self._cfg.default_extension)
                await self.download(url, dest)
            except (ImageDownloadError, httpx.HTTPError, httpx.InvalidURL, ValueError, OSError) as exc:
                log_event(
                    self._logger,
                    f"Failed to download image {url}: {exc}",
                    level=logging.WARNING,
                    event="image_download_failed",
                    url=url,
                    error=f"{type(exc).__name__}: {exc}",
                )
                continue
            rewritten[url] = self._public_url(dest)

        def _replace(match: re.Match) -> str:
            alt, url = match.group(1), match.group(2)
            if url not in rewritten:
                return match.group(0)
            return f"![{alt}]({rewritten[url]})"

        return IMAGE_RE.sub(_replace, markdown)

    async def download(self, url: str, dest: Path, _hops: int = 0) -> None:
        """Fetch ``url`` into ``dest``, following 301/302 redirects."""
        resp = await self._http.get(url, headers=self._headers_for(url), follow_redirects=False)
        if resp.status_code in REDIRECT_STATUSES:
            location = resp.headers.get("location")
            if not location:
                raise ImageDownloadError(f"Redirect without location: {resp.status_code}")
            if _hops >= self._cfg.max_redirects:
                raise ImageDownloadError(f"Too many redirects for {url}")
            await self.download(urljoin(url, location), dest, _hops + 1)
            return
        if resp.status_code != 200:
            raise ImageDownloadError(f"Failed to download image: {resp.status_code}")
        write_bytes_atomic(dest, resp.content)

    def _headers_for(self, url: str) -> dict[str, str]:
        if not self._auth_token or self._is_object_storage(url):
            return {}
        return {"Authorization": f"Bearer {self._auth_token}"}

    def _is_object_storage(self, url: str) -> bool:
        host = urlparse(url).hostname or ""
        return any(marker in host for marker in self._cfg.unauthenticated_hosts)

    def _public_url(self, dest: Path) -> str:
        relative = dest.relative_to(self.target_dir).as_posix()
        return f"{self.public_base_url}/{relative}"
