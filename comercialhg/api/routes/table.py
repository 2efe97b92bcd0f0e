"""
API route table.

An ordered, immutable mapping from path prefix to resource handler group.
The table is built once when the application is created. Prefixes are
disjoint except for auth, which mounts at the bare API prefix and owns
its own sub-paths.
"""
from dataclasses import dataclass
from typing import Tuple

from fastapi import APIRouter

from comercialhg.api.routes import resources

API_PREFIX = "/api"


@dataclass(frozen=True)
class RouteGroup:
    """One resource handler group bound under a fixed prefix."""

    name: str
    prefix: str
    router: APIRouter


RouteTable = Tuple[RouteGroup, ...]


def default_route_table() -> RouteTable:
    return (
        RouteGroup("auth", API_PREFIX, resources.auth),
        RouteGroup("usuarios", f"{API_PREFIX}/usuarios", resources.usuarios),
        RouteGroup("pedidos", f"{API_PREFIX}/pedidos", resources.pedidos),
        RouteGroup("catalogo", f"{API_PREFIX}/catalogo", resources.catalogo),
        RouteGroup("recomendaciones", f"{API_PREFIX}/recomendaciones", resources.recomendaciones),
        RouteGroup("notificaciones", f"{API_PREFIX}/notificaciones", resources.notificaciones),
        RouteGroup("analisis-espacio", f"{API_PREFIX}/analisis-espacio", resources.analisis_espacio),
        RouteGroup("modelos", f"{API_PREFIX}/modelos", resources.modelos),
    )
