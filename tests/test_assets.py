import base64
from io import StringIO

import pytest
from django.core.files.base import ContentFile
from django.core.files.storage import default_storage
from django.core.files.uploadedfile import SimpleUploadedFile
from django.core.management import call_command

from accounts.models import ActivityLog
from cms.assets import (
    Asset,
    classify_assets,
    cleanup_orphans,
    delete_assets,
    list_assets,
    referenced_urls,
    safe_filename,
    upload_asset,
    upload_data_url,
    walk_assets,
)

pytestmark = pytest.mark.django_db

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 16


def _store(path, data=PNG):
    return default_storage.save(f"site-assets/{path}", ContentFile(data))


def _image(url):
    return Asset(name=url.rsplit("/", 1)[-1], path=url, url=url, size=1, mimetype="image/png")


def test_safe_filename():
    assert safe_filename("my photo (1).png") == "my_photo__1_.png"
    assert safe_filename("../../etc/passwd") == "passwd"
    assert safe_filename("") == "file"


def test_list_assets_folders_first():
    _store("b.png")
    _store("a.png")
    _store("icons/x.png")
    names = [(a.name, a.is_folder) for a in list_assets()]
    assert names == [("icons", True), ("a.png", False), ("b.png", False)]
    assert [a.path for a in walk_assets()] == ["icons/x.png", "a.png", "b.png"]


def test_list_assets_missing_root_is_empty():
    assert list_assets() == []


def test_list_assets_rejects_parent_traversal():
    with pytest.raises(ValueError):
        list_assets("../secrets")


def test_referenced_urls_reads_main_image_and_content(make_post):
    make_post(
        "p",
        main_image_url="/media/site-assets/hero.png",
        content='<p><img src="/media/site-assets/inline.png" alt=""></p>',
    )
    assert referenced_urls() == {"/media/site-assets/hero.png", "/media/site-assets/inline.png"}


def test_classify_matches_absolute_and_relative_urls():
    used = _image("/media/site-assets/used.png")
    orphan = _image("/media/site-assets/orphan.png")
    doc = Asset(name="doc.pdf", path="doc.pdf", url="/media/site-assets/doc.pdf", size=1, mimetype="application/pdf")
    orphans, in_use = classify_assets(
        [used, orphan, doc],
        {"https://cdn.example.com/media/site-assets/used.png"},
    )
    assert orphans == [orphan]
    assert in_use == [used, doc]


def test_cleanup_orphans_deletes_unreferenced_images(make_post):
    kept = _store("kept.png")
    gone = _store("gone.png")
    make_post("p", main_image_url=default_storage.url(kept))

    assert cleanup_orphans(dry_run=True) == ["gone.png"]
    assert default_storage.exists(gone)

    assert cleanup_orphans() == ["gone.png"]
    assert not default_storage.exists(gone)
    assert default_storage.exists(kept)
    assert ActivityLog.objects.filter(action="Cleaned up 1 orphan assets").exists()


def test_cleanup_command_dry_run():
    path = _store("lonely.png")
    out = StringIO()
    call_command("cleanup_orphan_assets", "--dry-run", stdout=out)
    assert "lonely.png" in out.getvalue()
    assert default_storage.exists(path)

    call_command("cleanup_orphan_assets", stdout=StringIO())
    assert not default_storage.exists(path)


def test_upload_asset_prefixes_timestamp(superadmin):
    asset = upload_asset(SimpleUploadedFile("my pic.png", PNG), folder="blog", actor=superadmin)
    assert asset.path.startswith("blog/")
    assert asset.name.endswith("-my_pic.png")
    assert asset.is_image
    assert default_storage.exists(f"site-assets/{asset.path}")


def test_upload_data_url_defaults_to_jpeg():
    payload = base64.b64encode(b"fake-jpeg").decode()
    asset = upload_data_url(f"data:;base64,{payload}", name="pasted")
    assert asset.name.endswith("-pasted.jpg")
    with default_storage.open(f"site-assets/{asset.path}") as fh:
        assert fh.read() == b"fake-jpeg"


def test_upload_data_url_rejects_garbage():
    with pytest.raises(ValueError):
        upload_data_url("not a data url")


def test_delete_assets_counts_existing_only(superadmin):
    _store("x.png")
    assert delete_assets(["x.png", "missing.png"], actor=superadmin) == 1
