"""
Resource handler groups.

Each group owns every route under its mount prefix. The business handlers
(authentication, users, orders, catalog, recommendations, notifications,
space analysis and 3D models) live with their domain services; the
routers here declare the groups and answer a descriptor at their root so
a deployment can confirm every group is mounted.
"""
from fastapi import APIRouter


def build_group_router(name: str, index_path: str = "") -> APIRouter:
    """Create the router for one resource group with its descriptor endpoint."""
    router = APIRouter(tags=[name])

    @router.get(index_path, name=f"{name}_index")
    async def describe_group():
        return {"group": name, "status": "available"}

    return router


# Auth is mounted directly under /api, so it claims its own sub-path
auth = build_group_router("auth", index_path="/auth")
usuarios = build_group_router("usuarios")
pedidos = build_group_router("pedidos")
catalogo = build_group_router("catalogo")
recomendaciones = build_group_router("recomendaciones")
notificaciones = build_group_router("notificaciones")
analisis_espacio = build_group_router("analisis-espacio")
modelos = build_group_router("modelos")
