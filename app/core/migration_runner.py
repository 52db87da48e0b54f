import importlib.util
from pathlib import Path

from loguru import logger

from core.migration_tracker import MigrationTracker

PLUGINS_DIR = Path(__file__).resolve().parent.parent / "plugins"


def _load_migration(plugin_name: str, mig_file: Path):
    # file names like 1.0.0_init.py aren't importable by dotted path
    spec = importlib.util.spec_from_file_location(
        f"plugins.{plugin_name}.migrations.m_{mig_file.stem.replace('.', '_')}", mig_file
    )
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


async def run_plugin_migrations(plugin_name: str, db, plugins_dir: Path = PLUGINS_DIR):
    """Run all pending migrations for a plugin. Returns the files applied."""
    tracker = MigrationTracker(db)
    migrations_dir = plugins_dir / plugin_name / "migrations"
    if not migrations_dir.exists():
        return []

    applied = await tracker.applied_files(plugin_name)
    newly_applied = []

    for mig_file in sorted(migrations_dir.glob("*.py")):
        if mig_file.name in applied:
            continue
        module = _load_migration(plugin_name, mig_file)
        if hasattr(module, "run"):
            logger.info(f"🚀 Applying {plugin_name}:{mig_file.name}")
            await module.run(db)
            await tracker.record(plugin_name, mig_file.stem.split("_")[0], mig_file.name)
            newly_applied.append(mig_file.name)

    logger.info(f"✅ All migrations up to date for {plugin_name}.")
    return newly_applied


async def rollback_last_migration(plugin_name: str, db, plugins_dir: Path = PLUGINS_DIR):
    """Rollback the most recent migration for a plugin."""
    tracker = MigrationTracker(db)
    last = await tracker.last_applied(plugin_name)
    if not last:
        logger.warning(f"⚠️ No migrations to rollback for {plugin_name}.")
        return

    file_name = last["file"]
    module = _load_migration(plugin_name, plugins_dir / plugin_name / "migrations" / file_name)
    if hasattr(module, "rollback"):
        logger.info(f"↩️ Rolling back {plugin_name}:{file_name}")
        await module.rollback(db)
        await tracker.mark_rollback(plugin_name, last["version"])
        logger.info(f"✅ Rolled back {file_name}")
    else:
        logger.warning(f"⚠️ Migration {file_name} has no rollback defined.")
