# cms/assets.py
from __future__ import annotations

import base64
import binascii
import logging
import mimetypes
import posixpath
import re
import time
from dataclasses import dataclass
from urllib.parse import unquote, urlparse

from django.conf import settings
from django.core.files.base import ContentFile
from django.core.files.storage import default_storage

from accounts.activity import log_activity

from .models import Post

logger = logging.getLogger(__name__)

SAFE_NAME_RE = re.compile(r"[^A-Za-z0-9_.-]")
IMG_SRC_RE = re.compile(r"""<img\b[^>]*?\bsrc\s*=\s*["']([^"']+)["']""", re.I)
DATA_URL_RE = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+)?(?:;[\w=-]+)*;base64,(?P<data>.+)$", re.S)

DEFAULT_DATA_URL_MIME = "image/jpeg"


@dataclass
class Asset:
    name: str
    path: str
    url: str
    size: int
    mimetype: str
    is_folder: bool = False

    @property
    def is_image(self) -> bool:
        return not self.is_folder and self.mimetype.startswith("image/")


def assets_root() -> str:
    return getattr(settings, "ASSETS_FOLDER", "site-assets").strip("/")


def _full_path(folder: str = "") -> str:
    folder = (folder or "").strip("/")
    if ".." in folder.split("/"):
        raise ValueError("Invalid folder")
    return posixpath.join(assets_root(), folder) if folder else assets_root()


def list_assets(folder: str = "") -> list:
    """Folders first, then files, each group sorted by name."""
    base = _full_path(folder)
    if not default_storage.exists(base):
        return []

    dirs, files = default_storage.listdir(base)
    rel = (folder or "").strip("/")
    out = []
    for d in sorted(dirs):
        path = posixpath.join(rel, d) if rel else d
        out.append(Asset(name=d, path=path, url="", size=0, mimetype="", is_folder=True))
    for f in sorted(files):
        path = posixpath.join(rel, f) if rel else f
        full = posixpath.join(base, f)
        out.append(Asset(
            name=f,
            path=path,
            url=default_storage.url(full),
            size=default_storage.size(full),
            mimetype=mimetypes.guess_type(f)[0] or "application/octet-stream",
        ))
    return out


def walk_assets(folder: str = "") -> list:
    """Every file below `folder`, depth-first."""
    out = []
    for asset in list_assets(folder):
        if asset.is_folder:
            out.extend(walk_assets(asset.path))
        else:
            out.append(asset)
    return out


def _url_key(url: str) -> str:
    # absolute and relative forms of the same file compare equal
    return unquote(urlparse((url or "").strip()).path)


def referenced_urls(posts=None) -> set:
    if posts is None:
        posts = Post.objects.only("main_image_url", "content")
    refs = set()
    for post in posts:
        if post.main_image_url:
            refs.add(post.main_image_url)
        for src in IMG_SRC_RE.findall(post.content or ""):
            refs.add(src)
    return refs


def classify_assets(assets, referenced):
    """
    Split assets into (orphans, in_use). Only images can be orphans;
    folders and other files always count as in use.
    """
    ref_keys = {_url_key(u) for u in referenced if u}
    orphans, in_use = [], []
    for asset in assets:
        if asset.is_image and _url_key(asset.url) not in ref_keys:
            orphans.append(asset)
        else:
            in_use.append(asset)
    return orphans, in_use


def cleanup_orphans(dry_run: bool = False, actor=None) -> list:
    orphans, _ = classify_assets(walk_assets(), referenced_urls())
    names = [a.path for a in orphans]
    if not names:
        logger.info("No orphan assets found")
        return []

    if dry_run:
        logger.info("Dry run: %s orphan assets would be deleted", len(names))
        return names

    delete_assets(names, actor=None)
    log_activity(actor, f"Cleaned up {len(names)} orphan assets", {"deleted": names})
    logger.info("Deleted %s orphan assets", len(names))
    return names


def safe_filename(name: str) -> str:
    name = posixpath.basename((name or "").replace("\\", "/")) or "file"
    return SAFE_NAME_RE.sub("_", name)


def _timestamped(name: str) -> str:
    return f"{int(time.time() * 1000)}-{safe_filename(name)}"


def upload_asset(file, folder: str = "", actor=None) -> Asset:
    path = posixpath.join(_full_path(folder), _timestamped(getattr(file, "name", "")))
    saved = default_storage.save(path, file)
    log_activity(actor, f"Uploaded asset {posixpath.basename(saved)}")
    return _asset_for(saved)


def upload_data_url(data_url: str, folder: str = "", name: str = "image", actor=None) -> Asset:
    m = DATA_URL_RE.match((data_url or "").strip())
    if not m:
        raise ValueError("Not a base64 data URL")
    mime = m.group("mime") or DEFAULT_DATA_URL_MIME
    try:
        raw = base64.b64decode(m.group("data"), validate=False)
    except (binascii.Error, ValueError) as e:
        raise ValueError("Invalid base64 payload") from e

    ext = mimetypes.guess_extension(mime) or ".bin"
    if ext == ".jpe":
        ext = ".jpg"
    filename = _timestamped(posixpath.splitext(name)[0] + ext)
    saved = default_storage.save(posixpath.join(_full_path(folder), filename), ContentFile(raw))
    log_activity(actor, f"Uploaded asset {posixpath.basename(saved)}")
    return _asset_for(saved)


def _asset_for(storage_path: str) -> Asset:
    root = assets_root() + "/"
    rel = storage_path[len(root):] if storage_path.startswith(root) else storage_path
    return Asset(
        name=posixpath.basename(storage_path),
        path=rel,
        url=default_storage.url(storage_path),
        size=default_storage.size(storage_path),
        mimetype=mimetypes.guess_type(storage_path)[0] or "application/octet-stream",
    )


def delete_assets(paths, actor=None) -> int:
    deleted = 0
    for rel in paths:
        full = _full_path(rel)
        if default_storage.exists(full):
            default_storage.delete(full)
            deleted += 1
    if actor is not None:
        log_activity(actor, f"Deleted {deleted} assets", {"paths": list(paths)})
    return deleted
