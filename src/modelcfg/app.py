from __future__ import annotations

from pathlib import Path
from typing import Optional, Sequence

from modelcfg.config.registry import FeatureRegistry
from modelcfg.device.model import ModelLibrary
from modelcfg.device.model_loader import load_device
from modelcfg.shell.shell import ModelConfigShell
from modelcfg.utils.logger import get_logger, setup_logging

log = get_logger(__name__)


def build_registry(model_paths: Sequence[Path]) -> FeatureRegistry:
    library = ModelLibrary()
    for p in model_paths:
        library.add_device(load_device(p))
    return FeatureRegistry(library=library)


def run_app(
    model_paths: Sequence[Path],
    cfg: Optional[Path],
    cmd: str,
    shell: bool,
    log_level: str,
    quiet: bool,
    log_file: Optional[Path] = None,
) -> int:
    setup_logging(level=log_level, quiet=quiet, log_file=log_file)

    log.info("modelcfg starting")
    for p in model_paths:
        log.info("Device model: %s", p)

    registry = build_registry(model_paths)
    sh = ModelConfigShell(registry=registry)

    # Run optional startup script from --cfg (supports ';' and newlines; '#' and '//' line comments)
    if cfg is not None:
        if not cfg.exists():
            raise FileNotFoundError(cfg)
        if not sh.run_file(cfg) and not shell:
            return 1

    # Run scripted commands next (if provided)
    if cmd.strip():
        if not sh.run_script(cmd) and not shell:
            return 1

    if shell or (cfg is None and not cmd.strip()):
        sh.cmdloop()
    return 0
