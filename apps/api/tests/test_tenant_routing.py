import pytest
import pytest_asyncio

from routers.tenant import TenantHostRewriteMiddleware, extract_tenant_subdomain
from services.tenants import get_site_by_subdomain, insert_site


@pytest_asyncio.fixture
async def published_site(session_maker):
    async with session_maker() as session:
        site = await insert_site(
            "tenant-owner",
            session,
            subdomain="acme",
            title="Acme",
            html="<html><body>Acme landing</body></html>",
        )
        await insert_site(
            "tenant-owner",
            session,
            subdomain="promo",
            custom_domain="sale.easyland.site",
            html="<html><body>Custom</body></html>",
        )
        await insert_site("tenant-owner", session, subdomain="sale", html="<html><body>Shadowed</body></html>")
        return site.id


@pytest.mark.parametrize(
    "host,expected",
    [
        ("acme.easyland.site", "acme"),
        ("ACME.easyland.site:443", "acme"),
        ("easyland.site", None),
        ("www.easyland.site", None),
        ("acme.example.com", None),
        ("", None),
    ],
)
def test_extract_tenant_subdomain(host, expected):
    assert extract_tenant_subdomain(host, "easyland.site") == expected


@pytest.mark.asyncio
async def test_rewrite_preserves_path_and_query():
    seen = {}

    async def downstream(scope, receive, send):
        seen.update(scope)

    middleware = TenantHostRewriteMiddleware(downstream, dispatch_path="/subdomain-handler", root_domain="easyland.site")
    scope = {
        "type": "http",
        "path": "/pricing/plans",
        "raw_path": b"/pricing/plans",
        "query_string": b"ref=ad&x=1",
        "headers": [(b"host", b"acme.easyland.site")],
    }
    await middleware(scope, None, None)

    assert seen["path"] == "/subdomain-handler/pricing/plans"
    assert seen["query_string"] == b"ref=ad&x=1"
    assert scope["path"] == "/pricing/plans"


@pytest.mark.asyncio
async def test_non_tenant_hosts_pass_through():
    seen = {}

    async def downstream(scope, receive, send):
        seen.update(scope)

    middleware = TenantHostRewriteMiddleware(downstream, dispatch_path="/subdomain-handler", root_domain="easyland.site")
    await middleware({"type": "http", "path": "/credits/balance", "headers": [(b"host", b"easyland.site")]}, None, None)
    assert seen["path"] == "/credits/balance"


@pytest.mark.asyncio
async def test_tenant_host_serves_site_html(client, published_site):
    response = await client.get("/about?utm=1", headers={"host": "acme.easyland.site"})
    assert response.status_code == 200
    assert "Acme landing" in response.text
    assert response.headers["content-type"].startswith("text/html")


@pytest.mark.asyncio
async def test_custom_domain_takes_precedence(client, published_site):
    response = await client.get("/", headers={"host": "sale.easyland.site"})
    assert response.status_code == 200
    assert "Custom" in response.text


@pytest.mark.asyncio
async def test_unknown_tenant_gets_not_found_page(client, published_site):
    response = await client.get("/", headers={"host": "missing.easyland.site"})
    assert response.status_code == 404
    assert "missing.easyland.site" in response.text
    assert "Site Not Found" in response.text


@pytest.mark.asyncio
async def test_direct_dispatch_without_tenant_host_redirects(client):
    response = await client.get("/subdomain-handler/")
    assert response.status_code == 307


@pytest.mark.asyncio
async def test_lookup_by_subdomain_accepts_bare_label(db, published_site):
    site = await get_site_by_subdomain("acme", db)
    assert site is not None
    assert site.id == published_site
