"""
Tests for the settings panel draft, save and reset
"""

import asyncio
import pytest

from schoolhub.core.errors import UpdateError
from schoolhub.models import SiteTheme
from schoolhub.services.settings_panel import DRAFT_FIELDS, SettingsPanel
from schoolhub.services.tenant_resolver import TenantResolver
from schoolhub.services.tenant_store import TenantStore


async def panel_for(datastore, user_id, **kwargs):
    store = TenantStore(user_id, datastore, **kwargs)
    await store.load()
    return store, SettingsPanel(store)


@pytest.mark.asyncio
async def test_draft_loads_from_store(datastore, seed):
    store, panel = await panel_for(datastore, seed.user_id)

    assert set(panel.draft) == set(DRAFT_FIELDS)
    assert panel.draft["name"] == "Green Valley High"
    assert panel.draft["primary_color"] == "#FF0000"
    assert panel.is_dirty is False


@pytest.mark.asyncio
async def test_edit_and_reset(datastore, seed):
    store, panel = await panel_for(datastore, seed.user_id)

    panel.edit(name="Edited", theme=SiteTheme.CLASSIC)
    assert panel.is_dirty is True

    panel.reset()
    assert panel.draft["name"] == "Green Valley High"
    assert panel.is_dirty is False


@pytest.mark.asyncio
async def test_edit_rejects_other_fields(datastore, seed):
    store, panel = await panel_for(datastore, seed.user_id)

    with pytest.raises(ValueError):
        panel.edit(slug="new-slug")


@pytest.mark.asyncio
async def test_save_submits_full_draft(datastore, seed):
    store, panel = await panel_for(datastore, seed.user_id)
    panel.edit(name="Green Valley Academy", accent_color="#808080", meta_description="Est. 1990")

    tenant = await panel.save()

    assert tenant.name == "Green Valley Academy"
    assert store.tenant.accent_color == "#808080"
    assert panel.is_dirty is False

    row = await datastore.get_tenant(seed.tenant.id)
    assert row.meta_description == "Est. 1990"


@pytest.mark.asyncio
async def test_reset_reads_store_not_datastore(datastore, seed):
    store, panel = await panel_for(datastore, seed.user_id)

    # Another session writes straight to the data store
    await datastore.update_tenant(seed.tenant.id, {"name": "Changed Elsewhere"})
    panel.reset()

    assert panel.draft["name"] == "Green Valley High"

    await store.refresh()
    panel.reset()
    assert panel.draft["name"] == "Changed Elsewhere"


@pytest.mark.asyncio
async def test_failed_save_keeps_edits(failing_datastore, seed):
    store, panel = await panel_for(failing_datastore, seed.user_id)
    before = store.tenant
    panel.edit(name="Unsaved")

    with pytest.raises(UpdateError):
        await panel.save()

    assert store.tenant is before
    assert panel.draft["name"] == "Unsaved"
    assert panel.saving is False


@pytest.mark.asyncio
async def test_second_save_while_in_flight_is_skipped(slow_datastore, seed):
    store, panel = await panel_for(slow_datastore, seed.user_id, resolver=TenantResolver(slow_datastore))
    panel.edit(name="Once")

    first = asyncio.ensure_future(panel.save())
    await asyncio.sleep(0)
    second = await panel.save()
    await first

    assert second is None
    assert slow_datastore.calls == 1
    assert store.tenant.name == "Once"


@pytest.mark.asyncio
async def test_features_and_toggle(datastore, seed):
    store, panel = await panel_for(datastore, seed.user_id)

    await panel.toggle_feature("libraryManagement", True)

    states = {state.feature_key.value: state for state in panel.features()}
    assert states["libraryManagement"].is_enabled is True
    assert states["attendanceManagement"].config == {"grace_minutes": 10}


@pytest.mark.asyncio
async def test_keywords_are_part_of_the_seo_draft(datastore, seed):
    store, panel = await panel_for(datastore, seed.user_id)
    assert panel.draft["keywords"] == []

    panel.edit(keywords=["admissions", " sports ", "sports"])
    await panel.save()

    assert store.tenant.keywords == ["admissions", "sports"]
    assert (await datastore.get_tenant(seed.tenant.id)).keywords == ["admissions", "sports"]


@pytest.mark.asyncio
async def test_publishing_keeps_unsaved_edits(datastore, seed):
    store, panel = await panel_for(datastore, seed.user_id)
    assert panel.publication().label == "Unpublished"
    assert panel.publication().urls == ()

    panel.edit(name="Not Saved Yet")
    tenant = await panel.set_published(True)

    assert tenant.is_published is True
    assert store.tenant.name == "Green Valley High"
    assert panel.draft["name"] == "Not Saved Yet"
    assert panel.draft["is_published"] is True

    status = panel.publication()
    assert status.published is True
    assert status.urls == ("https://green-valley-high.schoolsaas.com",)


@pytest.mark.asyncio
async def test_published_site_lists_custom_domain(datastore, seed):
    store, panel = await panel_for(datastore, seed.user_id)
    await store.update_tenant({"custom_domain": "greenvalley.edu", "is_published": True})

    assert panel.publication().urls == (
        "https://green-valley-high.schoolsaas.com",
        "https://greenvalley.edu",
    )
