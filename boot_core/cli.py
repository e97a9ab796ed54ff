import argparse
import json
import sys
from typing import Optional

from . import config as config_mod
from . import log as log_mod
from . import shp as shp_mod


def _add_common_args(p: argparse.ArgumentParser):
    # SUPPRESS keeps a flag given before the subcommand from being reset by the subparser default.
    p.add_argument("--log-level", dest="log_level", default=argparse.SUPPRESS, help="Set log level (DEBUG, INFO, WARNING, ERROR)")
    p.add_argument("--log-format", dest="log_format", default=argparse.SUPPRESS, choices=["plain", "json"], help="Log output format")
    p.add_argument("--log-file", dest="log_file", default=argparse.SUPPRESS, help="Write logs to file path")
    p.add_argument(
        "--config",
        dest="config_path",
        default=argparse.SUPPRESS,
        help="Config file path. Overrides the default search order (executable dir, then working dir).",
    )


def _load_config(args) -> config_mod.Config:
    config_path = getattr(args, "config_path", None)
    paths = [config_path] if config_path else None
    return config_mod.load_config(search_paths=paths)


def _configure_logging(args, cfg: Optional[config_mod.Config] = None) -> None:
    log_cfg = cfg.log if cfg else config_mod.LogConfig()
    level = getattr(args, "log_level", None) or log_cfg.level or None
    fmt = getattr(args, "log_format", None) or log_cfg.format or None
    file = getattr(args, "log_file", None) or log_cfg.file or None
    json_format: Optional[bool] = None if fmt is None else (str(fmt).lower() == "json")
    log_mod.configure_logging(level=level, json_format=json_format, file=file)


def _cmd_config_show(args) -> int:
    cfg = _load_config(args)
    _configure_logging(args, cfg)
    if args.pretty:
        print(json.dumps(cfg.to_dict(), indent=2, ensure_ascii=False))
    else:
        print(json.dumps(cfg.to_dict(), ensure_ascii=False))
    return 0


def _cmd_log_test(args) -> int:
    _configure_logging(args)
    logger = log_mod.get_logger("boot_core")
    logger.debug("debug message", extra={"example": True})
    logger.info("info message", extra={"example": True})
    logger.warning("warning message", extra={"example": True})
    logger.error("error message", extra={"example": True})
    return 0


def _cmd_shp_info(args) -> int:
    _configure_logging(args)
    info = shp_mod.parse_shp_file(args.path)
    if args.json:
        print(json.dumps(info.to_dict(), ensure_ascii=False))
    else:
        print(f"Shape type: {info.shape_type}")
        print(f"Shapes:     {info.num_shapes}")
        print("Fields:     " + ", ".join(f"{f.name} ({f.field_type}{f.size})" for f in info.fields))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="bootcore", description="boot_core diagnostics CLI")
    _add_common_args(parser)

    subparsers = parser.add_subparsers(dest="command")

    p_cfg = subparsers.add_parser("config", help="Configuration helpers")
    sp_cfg = p_cfg.add_subparsers(dest="subcommand", required=True)
    p_cfg_show = sp_cfg.add_parser("show", help="Show the resolved configuration as JSON")
    _add_common_args(p_cfg_show)
    p_cfg_show.add_argument("--pretty", action="store_true", help="Pretty-print JSON output")
    p_cfg_show.set_defaults(func=_cmd_config_show)

    p_log = subparsers.add_parser("log", help="Logging helpers")
    sp_log = p_log.add_subparsers(dest="subcommand", required=True)
    p_log_test = sp_log.add_parser("test", help="Emit test log messages at all levels")
    _add_common_args(p_log_test)
    p_log_test.set_defaults(func=_cmd_log_test)

    p_shp = subparsers.add_parser("shp", help="Shapefile helpers")
    sp_shp = p_shp.add_subparsers(dest="subcommand", required=True)
    p_shp_info = sp_shp.add_parser("info", help="Summarize a shapefile")
    _add_common_args(p_shp_info)
    p_shp_info.add_argument("path", help="Path to the .shp file")
    p_shp_info.add_argument("--json", action="store_true", help="Print the summary as JSON")
    p_shp_info.set_defaults(func=_cmd_shp_info)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    func = getattr(args, "func", None)
    if not func:
        parser.print_help()
        return 2
    try:
        return int(func(args))
    except (config_mod.ConfigError, shp_mod.ShapefileError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
