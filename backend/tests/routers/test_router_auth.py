from wellness.deps import get_tenant_identity, require_admin
from wellness.routers import admin, bookings, programs
from fastapi.routing import APIRoute


def _route_calls(route: APIRoute) -> list[object]:
    return [dep.call for dep in route.dependant.dependencies]


def test_tenant_routers_require_identity() -> None:
    for module in (programs, bookings):
        assert any(dep.dependency == get_tenant_identity for dep in module.router.dependencies)
        for route in module.router.routes:
            if isinstance(route, APIRoute):
                assert get_tenant_identity in _route_calls(route)


def test_admin_router_requires_admin_role() -> None:
    assert any(dep.dependency == require_admin for dep in admin.router.dependencies)
    for route in admin.router.routes:
        if isinstance(route, APIRoute):
            assert require_admin in _route_calls(route)
