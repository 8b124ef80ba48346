"""Static file resolution across a chain of mounts.

A ``StaticMount`` maps a URL prefix onto a directory. The ``StaticResolver``
walks the mounts in registration order and, when no prefix matches, tries
a global fallback mount against the full request path::

    resolver = StaticResolver(
        [
            StaticMount("/assets", "assets"),
            StaticMount("/assets2", "assets2", not_found_file="index.html"),
        ],
        fallback=StaticMount("/", "assets2", not_found_file="index.html"),
    )

    match await resolver.resolve("/assets2/missing.css"):
        case FileHit(path=path):
            ...  # assets2/index.html, served with 200
        case DirectoryRedirect(location=location):
            ...  # 307 to location
        case Miss():
            ...  # 404

Once a mount's prefix matches, its answer is final: a miss under a mount
without a ``not_found_file`` is a miss, not a reason to try the fallback.

Paths that escape a mount's root (``..`` segments, symlinks, NUL bytes)
are reported as a plain miss. Filesystem checks go through ``anyio.Path``.
"""

import logging
import mimetypes
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

import anyio

from wren.http.response import Response

logger = logging.getLogger("wren.static")


@dataclass(frozen=True, slots=True)
class StaticMount:
    """A URL prefix served from a directory.

    Args:
        prefix: URL prefix, matched only at a segment boundary. ``"/"``
            matches every path.
        directory: Root directory for the prefix.
        not_found_file: File under *directory* served (with 200) when the
            requested file does not exist. ``None`` means a miss is a miss.
        index: File served for directory requests.
        cache_control: ``Cache-Control`` value for files from this mount.
    """

    prefix: str
    directory: Path
    not_found_file: str | None = None
    index: str = "index.html"
    cache_control: str = "public, max-age=3600"

    def __post_init__(self) -> None:
        # Normalize prefix: leading slash, no trailing slash, root is ""
        stripped = "/" + self.prefix.strip("/")
        object.__setattr__(self, "prefix", stripped if stripped != "/" else "")
        object.__setattr__(self, "directory", Path(self.directory))

    def relative_path(self, path: str) -> str | None:
        """The part of *path* below this mount, or ``None`` if the prefix doesn't match."""
        if not self.prefix:
            return path.lstrip("/")
        if path == self.prefix:
            return ""
        if path.startswith(self.prefix + "/"):
            return path[len(self.prefix) + 1 :]
        return None


# -- Resolutions --


@dataclass(frozen=True, slots=True)
class FileHit:
    """A regular file to send. ``substitute`` marks a not-found file."""

    path: Path
    cache_control: str = "public, max-age=3600"
    substitute: bool = False


@dataclass(frozen=True, slots=True)
class DirectoryRedirect:
    """A directory was requested without its trailing slash."""

    location: str
    status: int = 307


@dataclass(frozen=True, slots=True)
class Miss:
    """Nothing to serve."""


MISS = Miss()

type Resolution = FileHit | DirectoryRedirect | Miss


class StaticResolver:
    """Resolve request paths against a fixed chain of mounts.

    Built once when the app freezes; read without locking afterwards.
    Mount roots are resolved at construction so containment checks compare
    real paths.
    """

    __slots__ = ("_fallback", "_mounts", "_roots")

    def __init__(self, mounts: Sequence[StaticMount], fallback: StaticMount | None = None) -> None:
        self._mounts = tuple(mounts)
        self._fallback = fallback
        self._roots: dict[StaticMount, Path] = {}
        for mount in (*self._mounts, *([fallback] if fallback else [])):
            self._roots[mount] = mount.directory.resolve()

    @property
    def mounts(self) -> tuple[StaticMount, ...]:
        return self._mounts

    @property
    def fallback(self) -> StaticMount | None:
        return self._fallback

    async def resolve(self, path: str) -> Resolution:
        """Resolve a request path to a file, a directory redirect, or ``MISS``."""
        for mount in self._mounts:
            relative = mount.relative_path(path)
            if relative is None:
                continue
            result = await self._lookup(mount, relative, path)
            logger.debug("static %s -> %r (mount %s)", path, result, mount.prefix or "/")
            return result

        if self._fallback is None:
            return MISS
        result = await self._lookup(self._fallback, path.lstrip("/"), path)
        logger.debug("static %s -> %r (fallback)", path, result)
        return result

    async def _lookup(self, mount: StaticMount, relative: str, path: str) -> Resolution:
        found = await self._find(mount, relative, path)
        if not isinstance(found, Miss) or mount.not_found_file is None:
            return found

        substitute = await self._contained(mount, mount.directory / mount.not_found_file)
        if substitute is not None and await anyio.Path(substitute).is_file():
            return FileHit(substitute, mount.cache_control, substitute=True)
        return MISS

    async def _find(self, mount: StaticMount, relative: str, path: str) -> Resolution:
        if "\x00" in relative or "\\" in relative:
            return MISS
        segments = [s for s in relative.split("/") if s]
        if any(s in (".", "..") for s in segments):
            return MISS

        target = await self._contained(mount, mount.directory.joinpath(*segments))
        if target is None:
            return MISS
        apath = anyio.Path(target)

        if await apath.is_dir():
            index = await self._contained(mount, target / mount.index)
            if index is None or not await anyio.Path(index).is_file():
                return MISS
            if segments and not path.endswith("/"):
                return DirectoryRedirect(path + "/")
            return FileHit(index, mount.cache_control)

        if await apath.is_file():
            return FileHit(target, mount.cache_control)
        return MISS

    async def _contained(self, mount: StaticMount, candidate: Path) -> Path | None:
        """*candidate* with symlinks resolved, or ``None`` if it escapes the root."""
        root = self._roots[mount]
        try:
            resolved = Path(await anyio.Path(candidate).resolve())
        except (OSError, ValueError):
            return None
        if not resolved.is_relative_to(root):
            return None
        return resolved


# -- Sending --


async def file_response(hit: FileHit) -> Response:
    """Read a resolved file and build its response."""
    content_type, _ = mimetypes.guess_type(hit.path.name)
    if content_type is None:
        content_type = "application/octet-stream"

    body = await anyio.Path(hit.path).read_bytes()

    return Response(body=body, content_type=content_type).with_header(
        "Cache-Control", hit.cache_control
    )


def redirect_response(redirect: DirectoryRedirect) -> Response:
    """An empty redirect to the directory's trailing-slash URL."""
    return Response(body="", status=redirect.status).with_header("Location", redirect.location)
