from fastapi import APIRouter
import importlib
import logging
import pkgutil
import pathlib
from typing import List

logger = logging.getLogger(__name__)

api_router = APIRouter(prefix="/v1")
BASE_PACKAGE = "planboard.api"
BASE_PATH = pathlib.Path(__file__).parent

routers: List[str] = []  # Names of the loaded router modules

_routers_loaded = False


def init_routers() -> List[str]:
    global _routers_loaded
    global routers
    if not _routers_loaded:
        routers = include_routers_from_package(BASE_PACKAGE, BASE_PATH)
        _routers_loaded = True
    return routers


def include_routers_from_package(package: str, path: pathlib.Path) -> List[str]:
    """
    Dynamically discover and include all routers from the API package.
    Every module exposing a module-level ``router`` is mounted under /v1.
    """
    loaded_routers = []

    logger.info("🔨 Planboard API - Loading routers...")
    logger.info(f"📦 Scanning package: {package}")

    for module_info in pkgutil.walk_packages([str(path)], prefix=f"{package}."):
        module_name = module_info.name.split(".")[-1]

        # Skip internal modules and __init__.py
        if module_name.startswith("_") or module_name in ["main", "test", "tests"]:
            logger.debug(f"⏭️  Skipping module: {module_name}")
            continue

        try:
            module = importlib.import_module(module_info.name)
        except ImportError as e:
            logger.error(f"❌ Failed to load router from {module_info.name}: {e}")
            raise

        router = getattr(module, "router", None)
        if not isinstance(router, APIRouter):
            logger.debug(f"⚠️  No router found in module: {module_name}")
            continue

        api_router.include_router(router)
        loaded_routers.append(module_name)
        logger.info(
            f"✅ Loaded router: {module_name} "
            f"(prefix: {router.prefix or 'none'}, "
            f"tags: {router.tags or 'none'}, "
            f"routes: {len(router.routes)})"
        )

    logger.info(
        f"📊 Loaded {len(loaded_routers)} routers: {', '.join(loaded_routers)}"
    )
    return loaded_routers
