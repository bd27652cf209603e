# core/schema_registry.py
from __future__ import annotations
from typing import Callable, List, Tuple
from sqlalchemy.engine import Engine
import importlib
import logging
import pkgutil

logger = logging.getLogger(__name__)

# Schema installer type
SchemaInstaller = Callable[[Engine], None]

# Registry: (name, installer_func)
_REGISTRY: List[Tuple[str, SchemaInstaller]] = []

def register(
    name: str | SchemaInstaller, installer: SchemaInstaller | None = None
) -> SchemaInstaller | Callable[[SchemaInstaller], SchemaInstaller]:
    """
    Registers a schema installer function.
    Can be used as a decorator (@register) or a function call (register("name", fn)).
    """
    # Used as @register("name")
    if isinstance(name, str) and installer is None:
        def decorator(fn: SchemaInstaller) -> SchemaInstaller:
            _add(name, fn)
            return fn
        return decorator

    # Used as @register
    elif callable(name) and installer is None:
        fn = name
        _add(fn.__name__, fn)
        return fn

    # Used as register("name", fn)
    elif isinstance(name, str) and callable(installer):
        _add(name, installer)
        return installer

    raise TypeError("Invalid usage of @register")

def _add(name: str, fn: SchemaInstaller) -> None:
    if any(existing == name for existing, _ in _REGISTRY):
        return
    _REGISTRY.append((name, fn))

def run_all(engine: Engine):
    """
    Runs all registered schema installers in order.
    A failing installer is logged and the remaining ones still run.
    """
    logger.info(f"SchemaRegistry: Running {len(_REGISTRY)} installers...")
    for name, installer_fn in _REGISTRY:
        try:
            logger.info(f"  -> Applying schema: {name}")
            installer_fn(engine)
        except Exception as e:
            logger.error(f"  -> FAILED to apply schema {name}: {e}", exc_info=True)
    logger.info("SchemaRegistry: All installers complete.")

def registered_names() -> List[str]:
    return [name for name, _ in _REGISTRY]

def auto_discover(package: str = "schemas"):
    """
    Imports every module of a package so their @register decorators run.

    :param package: Dotted package name (e.g., "schemas").
    """
    try:
        pkg = importlib.import_module(package)
    except ImportError as e:
        logger.warning(f"Schema auto_discover: package {package!r} not importable ({e}). Skipping.")
        return

    logger.info(f"Schema auto_discover: Discovering modules in {package}...")
    for _, module_name, is_pkg in pkgutil.walk_packages(pkg.__path__, prefix=f"{package}."):
        if is_pkg:
            continue
        try:
            importlib.import_module(module_name)
            logger.info(f"  -> Discovered: {module_name}")
        except Exception as e:
            logger.error(f"  -> FAILED to import module {module_name}: {e}", exc_info=True)
