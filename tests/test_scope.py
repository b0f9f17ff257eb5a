import asyncio

from fakes import FakeRepository

from notice_banner.core.models import PermissionLevel, RootSiteMetadata, SiteMetadata
from notice_banner.services.scope import (
    SiteScopeResolver,
    normalize_site_id,
    site_id_variations,
)

HUB = "11111111-1111-1111-1111-111111111111"
SPOKE = "22222222-2222-2222-2222-222222222222"


def test_normalize_site_id():
    composite = f"contoso.sharepoint.com,{{{HUB.upper()}}},33333333-3333-3333-3333-333333333333"
    assert normalize_site_id(composite) == HUB
    assert normalize_site_id("{" + HUB.upper() + "}") == HUB
    assert normalize_site_id("") == ""


def test_site_id_variations_cover_host_and_path():
    variations = site_id_variations("https://contoso.sharepoint.com/sites/HR/")
    assert "contoso.sharepoint.com/sites/hr" in variations
    assert "contoso.sharepoint.com" in variations
    assert HUB in site_id_variations(f"contoso.sharepoint.com,{HUB},x")


def test_hub_scope_includes_associated_sites():
    repository = FakeRepository(
        metadata={HUB: SiteMetadata(id=HUB, hub_site_id=HUB)},
        hub_sites={HUB: [HUB, SPOKE, SPOKE.upper()]},
    )
    resolver = SiteScopeResolver(repository, HUB, "https://contoso.sharepoint.com/sites/hub")

    scope = asyncio.run(resolver.resolve_current_scope())
    assert scope.is_hub
    assert scope.kind == "hub"
    assert scope.associated_site_ids == [HUB, SPOKE]

    sites = asyncio.run(resolver.resolve_alert_source_sites())
    assert sites == [HUB, SPOKE]


def test_associated_site_only_sees_itself():
    repository = FakeRepository(metadata={SPOKE: SiteMetadata(id=SPOKE, hub_site_id=HUB)})
    resolver = SiteScopeResolver(repository, SPOKE, "https://contoso.sharepoint.com/sites/spoke")

    scope = asyncio.run(resolver.resolve_current_scope())
    assert not scope.is_hub
    assert scope.hub_parent_id == HUB
    assert asyncio.run(resolver.resolve_alert_source_sites([HUB])) == [SPOKE]


def test_home_scope_uses_known_sites():
    repository = FakeRepository(root=RootSiteMetadata(host="contoso.sharepoint.com", path="/"))
    resolver = SiteScopeResolver(repository, "root", "https://contoso.sharepoint.com/")

    scope = asyncio.run(resolver.resolve_current_scope())
    assert scope.is_home()
    sites = asyncio.run(resolver.resolve_alert_source_sites(["a", "b", "root"]))
    assert sites == ["root", "a", "b"]


def test_root_lookup_failure_is_not_home():
    repository = FakeRepository()
    repository.fail_root = True
    resolver = SiteScopeResolver(repository, "root", "https://contoso.sharepoint.com")
    scope = asyncio.run(resolver.resolve_current_scope())
    assert not scope.is_home()
    assert asyncio.run(resolver.resolve_alert_source_sites(["a"])) == ["root"]


def test_site_kind_classification():
    repository = FakeRepository(
        metadata={
            "t": SiteMetadata(id="t", web_url="https://contoso.sharepoint.com/teams/eng"),
            "c": SiteMetadata(id="c", template="Communication site"),
        }
    )
    team = SiteScopeResolver(repository, "t", "https://contoso.sharepoint.com/teams/eng")
    comm = SiteScopeResolver(repository, "c", "https://contoso.sharepoint.com/sites/news")
    assert asyncio.run(team.resolve_current_scope()).kind == "team"
    assert asyncio.run(comm.resolve_current_scope()).kind == "communication"


def test_metadata_failure_falls_back_to_current_site():
    repository = FakeRepository()
    repository.fail_metadata = True
    resolver = SiteScopeResolver(repository, "s1", "https://contoso.sharepoint.com/sites/s1")

    assert asyncio.run(resolver.resolve_alert_source_sites(["x"])) == ["s1"]
    # the fallback is not cached, so a recovered repository is consulted again
    repository.fail_metadata = False
    asyncio.run(resolver.resolve_current_scope())
    assert repository.metadata_calls == 2


def test_scope_is_cached_until_site_changes():
    repository = FakeRepository()
    resolver = SiteScopeResolver(repository, "s1", "https://contoso.sharepoint.com/sites/s1")
    asyncio.run(resolver.resolve_alert_source_sites())
    asyncio.run(resolver.resolve_alert_source_sites())
    assert repository.metadata_calls == 1

    assert resolver.navigate("S1", "https://contoso.sharepoint.com/sites/s1") is False
    asyncio.run(resolver.resolve_current_scope())
    assert repository.metadata_calls == 1

    assert resolver.navigate("s2", "https://contoso.sharepoint.com/sites/s2") is True
    assert asyncio.run(resolver.resolve_alert_source_sites()) == ["s2"]
    assert repository.metadata_calls == 2


def test_probe_permissions_tolerates_failures():
    repository = FakeRepository(
        metadata={"a": SiteMetadata(id="a", permission=PermissionLevel.CONTRIBUTE)}
    )
    repository.failing_sites = {"b", "s1"}
    resolver = SiteScopeResolver(repository, "s1", "https://contoso.sharepoint.com/sites/s1")

    levels = asyncio.run(resolver.probe_permissions(["a", "b", "s1"]))
    assert levels == {
        "a": PermissionLevel.CONTRIBUTE,
        "b": PermissionLevel.NONE,
        "s1": PermissionLevel.READ,
    }
