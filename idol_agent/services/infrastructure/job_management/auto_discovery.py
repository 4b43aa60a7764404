"""Auto-discovery module for job tasks."""

import importlib
from pathlib import Path

from idol_agent.lib.logger import configure_logger

from .decorators import JobRegistry

logger = configure_logger(__name__)

TASKS_PACKAGE = "idol_agent.services.infrastructure.job_management.tasks"


def discover_and_register_tasks() -> None:
    """Import every module in the tasks directory so its @job decorators run."""
    tasks_dir = Path(__file__).parent / "tasks"
    if not tasks_dir.exists():
        logger.warning(f"Tasks directory not found: {tasks_dir}")
        return

    discovered_modules = []
    for file_path in sorted(tasks_dir.glob("*.py")):
        if file_path.name.startswith("__"):
            continue

        full_module_name = f"{TASKS_PACKAGE}.{file_path.stem}"
        logger.debug(f"Importing task module: {full_module_name}")
        importlib.import_module(full_module_name)
        discovered_modules.append(file_path.stem)

    registered_tasks = JobRegistry.list_jobs()
    if registered_tasks:
        logger.info(
            f"Auto-discovered and registered {len(registered_tasks)} job tasks "
            f"from {len(discovered_modules)} modules"
        )
        for job_type, metadata in registered_tasks.items():
            logger.info(
                f"  - {job_type}: {metadata.name} (enabled: {metadata.enabled}, "
                f"interval: {metadata.interval_seconds}s)"
            )
    else:
        logger.warning("No job tasks were discovered and registered")
