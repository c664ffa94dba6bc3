import argparse
import os
import sys
from pathlib import Path

from mkimg.config import settings
from mkimg.domain import Configuration
from mkimg.logging import LoggerFactory, setup_logging
from mkimg.script.lua import run_script
from mkimg.storage.builder import build_image
from mkimg.storage.exceptions import ImageBuildError


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "").strip().lower() in {"1", "true", "yes", "on"}


def main(argv=None):
    parser = argparse.ArgumentParser(
        prog="mkimg",
        description="Build a GPT disk image from a Lua configuration script",
    )
    parser.add_argument("--config", default="mkimg.lua", help="Configuration file (lua)")
    parser.add_argument(
        "--dest", default="./", help="Destination directory for the generated image"
    )
    args = parser.parse_args(argv)

    log_dir = settings.get_setting("log_dir")
    setup_logging(
        debug=settings.get_bool("debug") or _env_flag("MKIMG_DEBUG"),
        trace=_env_flag("MKIMG_TRACE"),
        log_dir=Path(log_dir) if log_dir else None,
    )
    log = LoggerFactory.for_system()

    config = Configuration.from_settings(dest=Path(args.dest))
    try:
        run_script(args.config, config)
        build_image(config)
    except ImageBuildError as error:
        log.error(str(error))
        return 1
    finally:
        config.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
