"""
Tests for ProductService.

Covers the cache-aside listing, create/update/delete protocols and their
behavior when the cache, image storage or database fail.
"""

import json

import pytest

from core.cache import LISTING_KEY
from core.errors import InvalidInput, InvalidUpload, NotFound, PersistenceFailure
from core.uploads import IncomingFile
from manager.product_service import ListingSource
from tests.fakes import PNG_BYTES, REMOTE_CONFIG, FakeRedis, staged_files


def png(name: str = "photo.png") -> IncomingFile:
    return IncomingFile.from_bytes(name, "image/png", PNG_BYTES)


# =========================================
# create
# =========================================

@pytest.mark.asyncio
async def test_create_without_file(make_settings, make_service):
    """A product created without a file has no image."""
    service = await make_service(make_settings())

    product = await service.create("Widget", "desc")

    assert product.name == "Widget"
    assert product.description == "desc"
    assert product.image_reference is None
    assert product.created_at <= product.updated_at


@pytest.mark.asyncio
@pytest.mark.parametrize("name", [None, "", "   "])
async def test_create_requires_name(make_settings, make_service, repository, name):
    service = await make_service(make_settings())

    with pytest.raises(InvalidInput):
        await service.create(name, "desc", png())

    assert repository.rows == {}


@pytest.mark.asyncio
async def test_create_stores_image_locally_when_remote_unconfigured(
    make_settings, make_service, upload_dir, staging_dir
):
    service = await make_service(make_settings())

    product = await service.create("Widget", "", png())

    assert product.image_reference.startswith("/uploads/")
    stored = upload_dir / product.image_reference.rsplit("/", 1)[1]
    assert stored.read_bytes() == PNG_BYTES
    assert staged_files(staging_dir) == []


@pytest.mark.asyncio
async def test_create_stores_image_remotely_when_configured(
    make_settings, make_service, remote, staging_dir
):
    service = await make_service(make_settings(**REMOTE_CONFIG))

    product = await service.create("Widget", None, png("photo.png"))

    assert product.image_reference == "https://memory/1-photo.png"
    assert remote.blobs[product.image_reference] == PNG_BYTES
    assert staged_files(staging_dir) == []


@pytest.mark.asyncio
async def test_create_continues_without_image_when_remote_fails(
    make_settings, make_service, remote, repository, staging_dir
):
    """A failed upload degrades to a product without an image."""
    remote.fail_store = True
    service = await make_service(make_settings(**REMOTE_CONFIG))

    product = await service.create("Widget", "desc", png())

    assert product.image_reference is None
    assert product.id in repository.rows
    assert staged_files(staging_dir) == []


@pytest.mark.asyncio
async def test_create_falls_back_to_local_when_enabled(
    make_settings, make_service, remote, staging_dir
):
    remote.fail_store = True
    settings = make_settings(local_fallback_on_remote_failure=True, **REMOTE_CONFIG)
    service = await make_service(settings)

    product = await service.create("Widget", "desc", png())

    assert product.image_reference.startswith("/uploads/")
    assert staged_files(staging_dir) == []


@pytest.mark.asyncio
async def test_create_rejects_non_image(make_settings, make_service, repository, staging_dir):
    service = await make_service(make_settings())
    text_file = IncomingFile.from_bytes("notes.txt", "text/plain", b"hello")

    with pytest.raises(InvalidUpload):
        await service.create("Widget", "desc", text_file)

    assert repository.rows == {}
    assert staged_files(staging_dir) == []


@pytest.mark.asyncio
async def test_create_rejects_oversized_image_after_staging(
    make_settings, make_service, repository, staging_dir
):
    service = await make_service(make_settings(max_upload_bytes=16))

    with pytest.raises(InvalidUpload):
        await service.create("Widget", "desc", png())

    assert repository.rows == {}
    assert staging_dir.exists()
    assert staged_files(staging_dir) == []


@pytest.mark.asyncio
async def test_create_persistence_failure_propagates_and_discards_new_blob(
    make_settings, make_service, repository, remote, staging_dir
):
    repository.fail_on.add("insert")
    service = await make_service(make_settings(**REMOTE_CONFIG))

    with pytest.raises(PersistenceFailure):
        await service.create("Widget", "desc", png())

    assert remote.blobs == {}
    assert staged_files(staging_dir) == []


# =========================================
# get / list
# =========================================

@pytest.mark.asyncio
async def test_get_missing_product(make_settings, make_service):
    service = await make_service(make_settings())

    with pytest.raises(NotFound):
        await service.get(999)


@pytest.mark.asyncio
async def test_get_bypasses_cache(make_settings, make_service, fake_redis):
    service = await make_service(make_settings())
    product = await service.create("Widget")
    await service.list()

    fake_redis.data[LISTING_KEY] = json.dumps([])
    assert await service.get(product.id) == product


@pytest.mark.asyncio
async def test_list_served_from_cache_on_second_call(make_settings, make_service, events):
    service = await make_service(make_settings())
    await service.create("First")
    await service.create("Second")

    first = await service.list()
    second = await service.list()

    assert first.source == ListingSource.DATABASE
    assert second.source == ListingSource.CACHE
    assert first.items == second.items
    assert [p.name for p in first.items] == ["Second", "First"]
    assert events.count(("db.select_all",)) == 1


@pytest.mark.asyncio
async def test_list_caches_with_configured_ttl(make_settings, make_service, fake_redis):
    service = await make_service(make_settings(cache_ttl_seconds=30))
    await service.create("Widget")

    await service.list()

    assert fake_redis.ttls[LISTING_KEY] == 30


@pytest.mark.asyncio
async def test_listing_reloads_from_database_after_ttl_lapses(
    make_settings, make_service, fake_redis, events
):
    service = await make_service(make_settings())
    await service.create("Widget")

    assert (await service.list()).source == ListingSource.DATABASE
    assert (await service.list()).source == ListingSource.CACHE

    fake_redis.expire(LISTING_KEY)

    assert (await service.list()).source == ListingSource.DATABASE
    assert events.count(("db.select_all",)) == 2


@pytest.mark.asyncio
async def test_empty_listing_is_cached(make_settings, make_service):
    service = await make_service(make_settings())

    assert (await service.list()).source == ListingSource.DATABASE
    cached = await service.list()

    assert cached.source == ListingSource.CACHE
    assert cached.items == []


@pytest.mark.asyncio
async def test_list_without_cache_reads_database(make_settings, make_service, events):
    """An unreachable Redis degrades to database reads."""
    service = await make_service(make_settings(), redis_client=FakeRedis(fail=True))
    await service.create("Widget")

    first = await service.list()
    second = await service.list()

    assert first.source == ListingSource.DATABASE
    assert second.source == ListingSource.DATABASE
    assert events.count(("db.select_all",)) == 2


@pytest.mark.asyncio
async def test_list_survives_cache_outage_after_connect(make_settings, make_service, fake_redis):
    service = await make_service(make_settings())
    await service.create("Widget")
    fake_redis.fail = True

    listing = await service.list()

    assert listing.source == ListingSource.DATABASE
    assert [p.name for p in listing.items] == ["Widget"]


@pytest.mark.asyncio
async def test_list_ignores_undecodable_cached_payload(make_settings, make_service, fake_redis):
    service = await make_service(make_settings())
    await service.create("Widget")
    fake_redis.data[LISTING_KEY] = json.dumps([{"unexpected": True}])

    listing = await service.list()

    assert listing.source == ListingSource.DATABASE
    assert [p.name for p in listing.items] == ["Widget"]


@pytest.mark.asyncio
@pytest.mark.parametrize("mutation", ["create", "update", "delete"])
async def test_mutations_invalidate_listing(make_settings, make_service, fake_redis, mutation):
    service = await make_service(make_settings())
    product = await service.create("Widget")
    await service.list()
    assert LISTING_KEY in fake_redis.data

    if mutation == "create":
        await service.create("Gadget")
    elif mutation == "update":
        await service.update(product.id, name="Renamed")
    else:
        await service.delete(product.id)

    assert LISTING_KEY not in fake_redis.data
    listing = await service.list()
    assert listing.source == ListingSource.DATABASE


# =========================================
# update
# =========================================

@pytest.mark.asyncio
async def test_update_merges_missing_fields(make_settings, make_service):
    service = await make_service(make_settings())
    product = await service.create("Widget", "original")

    updated = await service.update(product.id, description="changed")
    assert updated.name == "Widget"
    assert updated.description == "changed"

    renamed = await service.update(product.id, name="Gadget", description="")
    assert renamed.name == "Gadget"
    assert renamed.description == "changed"
    assert renamed.created_at == product.created_at
    assert renamed.updated_at > updated.updated_at


@pytest.mark.asyncio
@pytest.mark.parametrize("name", ["", "   ", "\t\n"])
async def test_update_keeps_name_when_new_name_is_blank(make_settings, make_service, repository, name):
    service = await make_service(make_settings())
    product = await service.create("Widget", "desc")

    updated = await service.update(product.id, name=name)

    assert updated.name == "Widget"
    assert repository.rows[product.id].name == "Widget"


@pytest.mark.asyncio
async def test_update_missing_product(make_settings, make_service, staging_dir):
    service = await make_service(make_settings())

    with pytest.raises(NotFound):
        await service.update(42, name="x", file=png())

    assert staged_files(staging_dir) == []


@pytest.mark.asyncio
async def test_update_removes_old_image_after_row_update(
    make_settings, make_service, events, remote, staging_dir
):
    """New blob stored, then row updated, then old blob removed."""
    service = await make_service(make_settings(**REMOTE_CONFIG))
    product = await service.create("Widget", file=png("old.png"))
    old_reference = product.image_reference
    events.clear()

    updated = await service.update(product.id, file=png("new.png"))
    new_reference = updated.image_reference

    assert new_reference != old_reference
    assert events == [
        ("blob.store", new_reference),
        ("db.update", product.id, new_reference),
        ("blob.remove", old_reference),
    ]
    assert set(remote.blobs) == {new_reference}
    assert staged_files(staging_dir) == []


@pytest.mark.asyncio
async def test_update_persistence_failure_keeps_old_image(
    make_settings, make_service, repository, remote, staging_dir
):
    service = await make_service(make_settings(**REMOTE_CONFIG))
    product = await service.create("Widget", file=png("old.png"))
    old_reference = product.image_reference
    repository.fail_on.add("update")

    with pytest.raises(PersistenceFailure):
        await service.update(product.id, file=png("new.png"))

    assert repository.rows[product.id].image_reference == old_reference
    assert set(remote.blobs) == {old_reference}
    assert staged_files(staging_dir) == []


@pytest.mark.asyncio
async def test_update_with_failed_upload_keeps_old_image(
    make_settings, make_service, repository, remote, events
):
    service = await make_service(make_settings(**REMOTE_CONFIG))
    product = await service.create("Widget", file=png("old.png"))
    old_reference = product.image_reference
    remote.fail_store = True

    updated = await service.update(product.id, name="Renamed", file=png("new.png"))

    assert updated.name == "Renamed"
    assert updated.image_reference == old_reference
    assert old_reference in remote.blobs
    assert not any(event[0] == "blob.remove" for event in events)


@pytest.mark.asyncio
async def test_create_without_image_when_staging_dir_unwritable(
    make_settings, make_service, repository, tmp_path
):
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory")
    service = await make_service(make_settings(upload_staging_dir=str(blocker / "staging")))

    product = await service.create("Widget", "desc", png())

    assert product.image_reference is None
    assert repository.rows[product.id].name == "Widget"


@pytest.mark.asyncio
async def test_update_keeps_old_image_when_staging_dir_unwritable(
    make_settings, make_service, tmp_path, upload_dir
):
    settings = make_settings()
    service = await make_service(settings)
    product = await service.create("Widget", file=png("old.png"))
    old_file = upload_dir / product.image_reference.rsplit("/", 1)[1]

    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory")
    settings.upload_staging_dir = str(blocker / "staging")

    updated = await service.update(product.id, name="Renamed", file=png("new.png"))

    assert updated.name == "Renamed"
    assert updated.image_reference == product.image_reference
    assert old_file.exists()


@pytest.mark.asyncio
async def test_rejected_upload_still_raises_when_staging_dir_unwritable(
    make_settings, make_service, repository, tmp_path
):
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory")
    service = await make_service(make_settings(upload_staging_dir=str(blocker / "staging")))

    with pytest.raises(InvalidUpload):
        await service.create("Widget", file=IncomingFile.from_bytes("notes.txt", "text/plain", b"hi"))

    assert repository.rows == {}


@pytest.mark.asyncio
async def test_update_replaces_local_image_file(make_settings, make_service, upload_dir):
    service = await make_service(make_settings())
    product = await service.create("Widget", file=png("old.png"))
    old_file = upload_dir / product.image_reference.rsplit("/", 1)[1]
    assert old_file.exists()

    updated = await service.update(product.id, file=png("new.png"))

    new_file = upload_dir / updated.image_reference.rsplit("/", 1)[1]
    assert new_file.exists()
    assert not old_file.exists()


@pytest.mark.asyncio
async def test_update_with_rejected_upload_changes_nothing(
    make_settings, make_service, repository, staging_dir
):
    service = await make_service(make_settings())
    product = await service.create("Widget")

    with pytest.raises(InvalidUpload):
        await service.update(
            product.id,
            name="Renamed",
            file=IncomingFile.from_bytes("a.gif", "application/pdf", b"%PDF"),
        )

    assert repository.rows[product.id].name == "Widget"
    assert staged_files(staging_dir) == []


# =========================================
# delete
# =========================================

@pytest.mark.asyncio
async def test_delete_then_get_is_not_found(make_settings, make_service):
    service = await make_service(make_settings())
    product = await service.create("Widget")

    await service.delete(product.id)

    with pytest.raises(NotFound):
        await service.get(product.id)


@pytest.mark.asyncio
async def test_delete_removes_row_before_image(make_settings, make_service, events, remote):
    service = await make_service(make_settings(**REMOTE_CONFIG))
    product = await service.create("Widget", file=png())
    events.clear()

    await service.delete(product.id)

    assert events == [
        ("db.delete", product.id),
        ("blob.remove", product.image_reference),
    ]
    assert remote.blobs == {}


@pytest.mark.asyncio
async def test_delete_succeeds_when_image_removal_fails(
    make_settings, make_service, repository, remote
):
    service = await make_service(make_settings(**REMOTE_CONFIG))
    product = await service.create("Widget", file=png())
    remote.fail_remove = True

    await service.delete(product.id)

    assert product.id not in repository.rows
    assert product.image_reference in remote.blobs


@pytest.mark.asyncio
async def test_delete_leaves_remote_image_when_remote_unconfigured(
    make_settings, make_service, repository, remote, events
):
    """A remote reference is never handed to the local backend."""
    settings = make_settings(**REMOTE_CONFIG)
    service = await make_service(settings)
    product = await service.create("Widget", file=png())
    settings.aws_region = None

    await service.delete(product.id)

    assert product.id not in repository.rows
    assert product.image_reference in remote.blobs
    assert not any(event[0] == "blob.remove" for event in events)


@pytest.mark.asyncio
async def test_delete_missing_product(make_settings, make_service):
    service = await make_service(make_settings())

    with pytest.raises(NotFound):
        await service.delete(7)
