import argparse
import asyncio
import sys
from typing import List, Optional

from autotranslate.app_config import AppConfig, load_app_config
from autotranslate.coordinator import autotranslate, update_hashes
from autotranslate.errors import AutotranslateError
from autotranslate.logging_config import setup_logger
from autotranslate.watch import run_watch_mode


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='autotranslate',
        description='A utility for automated translation of strings for localizable software'
    )
    parser.add_argument('--config', default=None,
                        help='Path to the config file to use (default: autotranslate.json, '
                             'or AUTOTRANSLATE_CONFIG_FILE)')
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Show details of the configuration and the progress of the translations')
    parser.add_argument('--watch', action='store_true',
                        help='Run continuously, watching for modifications to the source file')
    parser.add_argument('--update-hashes', action='store_true',
                        help='Update hashes in target files without generating new translations')
    return parser


def configure_logging(config: AppConfig):
    log_level = 'DEBUG' if config.verbose else config.logging.log_level
    return setup_logger(log_level, config.logging.log_file_path, config.logging.log_to_console)


async def run(args: argparse.Namespace) -> None:
    config = load_app_config(args.config, verbose=args.verbose, validate_llm_settings=not args.update_hashes)
    logger = configure_logging(config)
    logger.info("Autotranslate starting...")

    if args.update_hashes:
        update_hashes(config)
    elif args.watch:
        await run_watch_mode(config.source.file, lambda: autotranslate(config))
    else:
        await autotranslate(config)


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logger = setup_logger('DEBUG' if args.verbose else 'INFO', None, True)

    if args.watch and args.update_hashes:
        logger.error("Error: --watch and --update-hashes cannot be used together")
        return 1

    try:
        asyncio.run(run(args))
    except AutotranslateError as e:
        logger.error("Error: %s", e)
        return 1
    except KeyboardInterrupt:
        logger.info("Stopped.")
    return 0


if __name__ == '__main__':
    sys.exit(main())
