import importlib
from pathlib import Path

from fastapi import FastAPI
from loguru import logger

from core.config import settings
from core.migration_runner import run_plugin_migrations

PLUGINS_DIR = Path(__file__).resolve().parent.parent / "plugins"


async def discover_and_register_plugins(app: FastAPI, db=None, plugins_dir: Path = PLUGINS_DIR):
    """
    Discover plugins under /plugins, mount their routers and run their migrations.

    A plugin is a package exposing `plugin.init_plugin(app)` which returns
    {"router": APIRouter}. The router is mounted under `/<plugin_name>`.
    """
    logger.info(f"🔍 Starting plugin discovery in {settings.APP_ENV.upper()} mode...")

    loaded_plugins = []
    if not plugins_dir.exists():
        logger.warning(f"⚠️ Plugins directory not found: {plugins_dir}")
        return loaded_plugins

    for plugin_dir in sorted(p for p in plugins_dir.iterdir() if p.is_dir() and not p.name.startswith(("_", "."))):
        plugin_name = plugin_dir.name
        if not (plugin_dir / "plugin.py").exists():
            logger.warning(f"⚠️ Skipping {plugin_name}: no plugin.py")
            continue

        plugin_module = importlib.import_module(f"plugins.{plugin_name}.plugin")

        if not hasattr(plugin_module, "init_plugin"):
            logger.warning(f"⚠️ Plugin {plugin_name} missing init_plugin()")
            continue

        plugin_instance = plugin_module.init_plugin(app)
        router = plugin_instance.get("router")
        if router:
            app.include_router(
                router,
                prefix=f"/{plugin_name}",
                tags=[plugin_name],
            )

        if db is not None:
            await run_plugin_migrations(plugin_name, db, plugins_dir)

        loaded_plugins.append(plugin_name)
        logger.info(f"🧩 Loaded plugin: {plugin_name}")

    logger.info(f"✅ Plugin discovery complete, {len(loaded_plugins)} loaded.")
    return loaded_plugins
