from __future__ import annotations

import argparse
import json
import sys
import textwrap
from pathlib import Path
from typing import Any

from ._version import __version__
from .client import PromptdockError
from .config import Config, config_path, load_config, save_config, with_overrides
from .manifest import all_installed, list_installed
from .models import RegistryMeta, isoformat_z, utc_now
from .registry import LoadedRegistry, RegistryLoader, is_cache_fresh
from .skills import BatchResult, SkillInstaller
from .store import read_model


def _print_table(rows: list[list[str]]) -> None:
    if not rows:
        return
    widths = [0] * len(rows[0])
    for r in rows:
        for i, c in enumerate(r):
            widths[i] = max(widths[i], len(c))
    for r in rows:
        line = "  ".join(c.ljust(widths[i]) for i, c in enumerate(r))
        print(line.rstrip())


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, indent=2, sort_keys=True))


def _is_interactive() -> bool:
    return sys.stdin.isatty() and sys.stdout.isatty()


def _meta_dict(meta: RegistryMeta | None) -> dict[str, Any] | None:
    if meta is None:
        return None
    return meta.model_dump(mode="json", by_alias=True)


def _make_loader(cfg: Config) -> RegistryLoader:
    return RegistryLoader(cfg)


def _wait_for_background(loader: RegistryLoader, cfg: Config) -> None:
    # Runs after a command has printed; a running refresh gets a bounded grace period before exit.
    thread = loader.background_refresh
    if thread is not None and thread.is_alive():
        sys.stdout.flush()
        thread.join(timeout=cfg.timeout_s + 1.0)


def _skills_root(cfg: Config, project: bool) -> Path:
    return Path(cfg.project_skills_dir if project else cfg.personal_skills_dir)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="promptdock",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        description="Prompt library CLI: registry cache and skill installs.",
        epilog=textwrap.dedent(
            """\
            Environment variables:
              PROMPTDOCK_HOME, PROMPTDOCK_CONFIG_PATH, PROMPTDOCK_REGISTRY_URL, PROMPTDOCK_TIMEOUT_S
            """
        ),
    )

    def _add_runtime_overrides(parser: argparse.ArgumentParser, *, suppress: bool) -> None:
        # Accepted before and after the subcommand; SUPPRESS keeps the subparser from clobbering the top-level value.
        default = argparse.SUPPRESS if suppress else None
        parser.add_argument("--registry-url", default=default, help="Remote registry URL (overrides config/env)")
        parser.add_argument("--timeout-s", type=float, default=default, help="HTTP timeout in seconds")

    _add_runtime_overrides(p, suppress=False)
    p.add_argument("--version", action="version", version=f"promptdock {__version__}")

    sub = p.add_subparsers(dest="cmd", required=True)

    # config
    cfg = sub.add_parser("config", help="Manage local config")
    cfg_sub = cfg.add_subparsers(dest="subcmd", required=True)
    cfg_sub.add_parser("path", help="Print config path")
    cfg_sub.add_parser("show", help="Show effective config")
    cfg_set = cfg_sub.add_parser("set", help="Set config fields")
    cfg_set.add_argument("--registry-url", dest="set_registry_url")
    cfg_set.add_argument("--cache-ttl-s", type=float)
    cfg_set.add_argument("--timeout-s", dest="set_timeout_s", type=float)
    cfg_set.add_argument("--auto-refresh", choices=("true", "false"))
    cfg_set.add_argument("--local-prompts", choices=("true", "false"))

    # registry
    reg = sub.add_parser("registry", help="Inspect or refresh the local registry cache")
    reg_sub = reg.add_subparsers(dest="subcmd", required=True)
    reg_status = reg_sub.add_parser("status", help="Show cache metadata and freshness")
    reg_status.add_argument("--json", action="store_true", help="Output JSON")
    reg_refresh = reg_sub.add_parser("refresh", help="Fetch the registry now (conditional GET)")
    _add_runtime_overrides(reg_refresh, suppress=True)
    reg_refresh.add_argument("--json", action="store_true", help="Output JSON")

    # prompts
    lst = sub.add_parser("list", aliases=["ls"], help="List prompts from the merged registry")
    _add_runtime_overrides(lst, suppress=True)
    lst.add_argument("--category", help="Only prompts in this category")
    lst.add_argument("--json", action="store_true", help="Output JSON")

    show = sub.add_parser("show", help="Show a single prompt")
    _add_runtime_overrides(show, suppress=True)
    show.add_argument("prompt_id")
    show.add_argument("--json", action="store_true", help="Output JSON")

    # skills
    install = sub.add_parser("install", aliases=["i"], help="Install prompts as SKILL.md files")
    _add_runtime_overrides(install, suppress=True)
    install.add_argument("ids", nargs="*", help="Prompt ids to install")
    install.add_argument("--all", action="store_true", help="Install every prompt in the registry")
    install.add_argument("--project", action="store_true", help="Install into the project root instead of personal")
    install.add_argument("--force", action="store_true", help="Overwrite skills with user modifications")
    install.add_argument("--json", action="store_true", help="Output JSON")

    uninstall = sub.add_parser("uninstall", aliases=["remove", "rm"], help="Remove installed skills")
    uninstall.add_argument("ids", nargs="+", help="Skill ids to remove")
    uninstall.add_argument("--project", action="store_true", help="Remove from the project root instead of personal")
    uninstall.add_argument("--yes", action="store_true", help="Confirm removal (required when non-interactive)")
    uninstall.add_argument("--json", action="store_true", help="Output JSON")

    installed = sub.add_parser("installed", help="List installed skills")
    where = installed.add_mutually_exclusive_group()
    where.add_argument("--personal", action="store_true", help="Only the personal root")
    where.add_argument("--project", action="store_true", help="Only the project root")
    installed.add_argument("--json", action="store_true", help="Output JSON")

    return p


def cmd_config(args: argparse.Namespace, cfg: Config) -> int:
    if args.subcmd == "path":
        print(str(config_path()))
        return 0

    if args.subcmd == "show":
        _print_json(cfg.__dict__.copy())
        return 0

    if args.subcmd == "set":
        # File values only; env overrides apply to this run, not to what gets saved.
        base = load_config(apply_env=False)
        changes: dict[str, Any] = {}
        if args.set_registry_url is not None:
            changes["registry_url"] = args.set_registry_url
        if args.cache_ttl_s is not None:
            changes["cache_ttl_s"] = args.cache_ttl_s
        if args.set_timeout_s is not None:
            changes["timeout_s"] = args.set_timeout_s
        if args.auto_refresh is not None:
            changes["auto_refresh"] = args.auto_refresh == "true"
        if args.local_prompts is not None:
            changes["local_prompts_enabled"] = args.local_prompts == "true"
        path = save_config(Config(**{**base.__dict__, **changes}))
        print(f"Saved config to {path}")
        return 0

    raise AssertionError("unreachable")


def _registry_summary(loaded: LoadedRegistry) -> dict[str, Any]:
    return {
        "source": loaded.source.value,
        "count": len(loaded.prompts),
        "meta": _meta_dict(loaded.meta),
    }


def cmd_registry(args: argparse.Namespace, cfg: Config) -> int:
    if args.subcmd == "status":
        meta = read_model(cfg.meta_path, RegistryMeta)
        payload = {
            "cache_path": cfg.cache_path,
            "meta_path": cfg.meta_path,
            "registry_url": cfg.registry_url,
            "cache_ttl_s": cfg.cache_ttl_s,
            "meta": _meta_dict(meta),
            "fresh": is_cache_fresh(meta, cfg.cache_ttl_s, utc_now()),
        }
        if args.json:
            _print_json(payload)
            return 0
        print(f"registry: {cfg.registry_url}")
        print(f"cache: {cfg.cache_path}")
        if meta is None:
            print("status: no cached registry")
            return 0
        _print_table(
            [
                ["FIELD", "VALUE"],
                ["version", meta.version],
                ["etag", meta.etag or "-"],
                ["fetched_at", isoformat_z(meta.fetched_at)],
                ["prompts", str(meta.prompt_count)],
                ["fresh", "yes" if payload["fresh"] else "no"],
            ]
        )
        return 0

    if args.subcmd == "refresh":
        loaded = _make_loader(cfg).refresh()
        if args.json:
            _print_json(_registry_summary(loaded))
            return 0
        print(f"source: {loaded.source.value}")
        print(f"prompts: {len(loaded.prompts)}")
        if loaded.meta is not None:
            print(f"fetched_at: {isoformat_z(loaded.meta.fetched_at)}")
        return 0

    raise AssertionError("unreachable")


def cmd_list(args: argparse.Namespace, cfg: Config) -> int:
    loader = _make_loader(cfg)
    loaded = loader.load()
    prompts = loaded.prompts
    if args.category:
        prompts = [p for p in prompts if p.category == args.category]

    if args.json:
        _print_json(
            {
                "source": loaded.source.value,
                "count": len(prompts),
                "prompts": [p.model_dump(mode="json", include={"id", "title", "category", "version"}) for p in prompts],
            }
        )
    else:
        rows = [["ID", "CATEGORY", "VERSION", "TITLE"]]
        for p in prompts:
            rows.append([p.id, p.category, p.version, p.title])
        _print_table(rows)
        print(f"\n{len(prompts)} prompt(s) from {loaded.source.value}")

    _wait_for_background(loader, cfg)
    return 0


def cmd_show(args: argparse.Namespace, cfg: Config) -> int:
    loader = _make_loader(cfg)
    loaded = loader.load()
    prompt = loaded.get(args.prompt_id)
    if prompt is None:
        raise PromptdockError(f"Prompt not found: {args.prompt_id}")

    if args.json:
        _print_json(prompt.model_dump(mode="json"))
    else:
        print(f"{prompt.title} ({prompt.id})")
        print(f"category: {prompt.category}  version: {prompt.version}")
        if prompt.tags:
            print(f"tags: {', '.join(prompt.tags)}")
        print()
        print(prompt.content)

    _wait_for_background(loader, cfg)
    return 0


def _report_batch(result: BatchResult, *, as_json: bool, labels: tuple[str, str, str]) -> int:
    ok_label, skip_label, fail_label = labels
    if as_json:
        _print_json(
            {
                "success": result.ok,
                ok_label: list(result.succeeded),
                skip_label: list(result.skipped),
                fail_label: list(result.failed),
                "target_dir": str(result.target_dir),
            }
        )
        return 0 if result.ok else 1

    for message in result.messages:
        print(message)
    print()
    _print_table(
        [
            ["RESULT", "COUNT"],
            [ok_label, str(len(result.succeeded))],
            [skip_label, str(len(result.skipped))],
            [fail_label, str(len(result.failed))],
        ]
    )
    if result.failed:
        print(f"error: {len(result.failed)} skill(s) failed: {', '.join(result.failed)}", file=sys.stderr)
        return 1
    return 0


def cmd_install(args: argparse.Namespace, cfg: Config) -> int:
    loader = _make_loader(cfg)
    loaded = loader.load()
    ids = [p.id for p in loaded.prompts] if args.all else list(args.ids)
    if not ids:
        raise PromptdockError("No prompts specified. Use <id> or --all.")

    result = SkillInstaller(_skills_root(cfg, args.project)).install(loaded.prompts, ids, force=args.force)
    rc = _report_batch(result, as_json=args.json, labels=("installed", "skipped", "failed"))
    _wait_for_background(loader, cfg)
    return rc


def cmd_uninstall(args: argparse.Namespace, cfg: Config) -> int:
    installer = SkillInstaller(_skills_root(cfg, args.project))
    result = installer.uninstall(args.ids, confirmed=args.yes, interactive=_is_interactive())
    return _report_batch(result, as_json=args.json, labels=("removed", "not_found", "failed"))


def cmd_installed(args: argparse.Namespace, cfg: Config) -> int:
    personal = Path(cfg.personal_skills_dir)
    project = Path(cfg.project_skills_dir)
    if args.personal:
        skills = list_installed(personal, "personal")
    elif args.project:
        skills = list_installed(project, "project")
    else:
        skills = all_installed(personal, project)

    if args.json:
        _print_json(
            {
                "installed": [s.__dict__ for s in skills],
                "count": len(skills),
                "locations": {
                    "personal": None if args.project else str(personal),
                    "project": None if args.personal else str(project),
                },
            }
        )
        return 0

    if not skills:
        print("No skills installed. Install one with: promptdock install <id>")
        return 0
    rows = [["ID", "KIND", "VERSION", "LOCATION"]]
    for s in skills:
        rows.append([s.id, s.kind, s.version, s.location])
    _print_table(rows)
    return 0


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        cfg = with_overrides(load_config(), registry_url=args.registry_url, timeout_s=args.timeout_s)
        if args.cmd == "config":
            return cmd_config(args, cfg)
        if args.cmd == "registry":
            return cmd_registry(args, cfg)
        if args.cmd in ("list", "ls"):
            return cmd_list(args, cfg)
        if args.cmd == "show":
            return cmd_show(args, cfg)
        if args.cmd in ("install", "i"):
            return cmd_install(args, cfg)
        if args.cmd in ("uninstall", "remove", "rm"):
            return cmd_uninstall(args, cfg)
        if args.cmd == "installed":
            return cmd_installed(args, cfg)
        raise AssertionError("unreachable")
    except PromptdockError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    except OSError as e:
        print(f"error: could not write local state: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
