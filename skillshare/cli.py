from __future__ import annotations

import argparse
import json
import os
from pathlib import Path

from .errors import (
    ConflictError,
    DuplicateUnitError,
    LinkUnsupportedError,
    SkillshareConfigError,
    SkillshareError,
    SourceMissingError,
)
from .models import MODES, SkillshareConfig, TargetConfig


# Well-known skills directories offered by `skillshare init`.
DEFAULT_TARGETS: dict[str, str] = {
    "claude": "~/.claude/skills",
    "codex": "~/.codex/skills",
    "cursor": "~/.cursor/skills",
    "gemini": "~/.gemini/skills",
}


def _apply_config_selection(args: argparse.Namespace) -> None:
    """Thread an explicit --config through SKILLSHARE_CONFIG for this invocation."""

    explicit: Path | None = getattr(args, "config", None)
    if explicit is not None:
        os.environ["SKILLSHARE_CONFIG"] = str(Path(explicit).expanduser().resolve())


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="skillshare",
        description="Share one skills directory across AI CLI tools via links",
    )
    p.add_argument("--config", type=Path, default=None, help="Config file (default: ~/.config/skillshare/config.toml)")

    # cmd is NOT required - no args prints status
    sub = p.add_subparsers(dest="cmd", required=False)

    init = sub.add_parser("init", help="Create the source directory and config")
    init.add_argument("--source", "-s", type=str, default=None, help="Source directory")
    init.add_argument("--mode", choices=list(MODES), default="merge", help="Default sync mode")
    init.add_argument(
        "--target", dest="targets", action="append", default=[], metavar="NAME=PATH", help="Add a target"
    )
    init.add_argument("--no-detect", action="store_true", help="Do not detect well-known skills directories")

    s = sub.add_parser("sync", help="Sync skills to targets")
    s.add_argument("--target", "-t", dest="targets", action="append", default=[], help="Only sync this target")
    s.add_argument("--dry-run", "-n", action="store_true")
    s.add_argument("--force", "-f", action="store_true", help="Replace links that point elsewhere")
    s.add_argument("--migrate", action="store_true", help="Move existing target files into source (symlink mode)")
    s.add_argument("--json", dest="json_output", action="store_true", help="Output as JSON")

    st = sub.add_parser("status", help="Show source and target status")
    st.add_argument("--json", dest="json_output", action="store_true", help="Output as JSON")

    d = sub.add_parser("diff", help="Show differences between source and targets")
    d.add_argument("target", nargs="?", default=None)
    d.add_argument("--json", dest="json_output", action="store_true", help="Output as JSON")

    ls = sub.add_parser("list", help="List skills in source")
    ls.add_argument("--verbose", "-v", action="store_true")
    ls.add_argument("--json", dest="json_output", action="store_true", help="Output as JSON")

    c = sub.add_parser("collect", help="Copy local-only skills from targets into source")
    c.add_argument("target", nargs="?", default=None)
    c.add_argument("--all", "-a", dest="all_targets", action="store_true", help="Collect from every target")
    c.add_argument("--dry-run", "-n", action="store_true")
    c.add_argument("--force", "-f", action="store_true", help="Overwrite skills that already exist in source")
    c.add_argument("--json", dest="json_output", action="store_true", help="Output as JSON")

    sub.add_parser("doctor", help="Check environment and targets")

    tgt = sub.add_parser("target", help="Manage targets")
    tgt_sub = tgt.add_subparsers(dest="target_cmd", required=True)
    ta = tgt_sub.add_parser("add", help="Add a target")
    ta.add_argument("name")
    ta.add_argument("path")
    ta.add_argument("--mode", choices=list(MODES), default=None)
    tr = tgt_sub.add_parser("remove", help="Remove a target")
    tr.add_argument("name")
    tgt_sub.add_parser("list", help="List targets")

    return p


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    _apply_config_selection(args)

    try:
        return _run(args)
    except SkillshareConfigError as e:
        print(f"error: {e}")
        return 2
    except (ConflictError, DuplicateUnitError) as e:
        print(f"error: {e}")
        return 2
    except SourceMissingError as e:
        print(f"error: {e}")
        return 3
    except LinkUnsupportedError as e:
        print(f"error: {e}")
        return 5
    except PermissionError as e:
        print(f"error: {e}")
        return 6
    except SkillshareError as e:
        print(f"error: {e}")
        return 1
    except Exception as e:  # pragma: no cover
        print(f"error: {e}")
        return 1


def _load_config() -> SkillshareConfig:
    from .config import parse_config_file

    return parse_config_file()


def _parse_target_spec(spec: str) -> tuple[str, str]:
    name, sep, path = spec.partition("=")
    if not sep or not name or not path:
        raise ValueError(f"invalid --target {spec!r}: expected NAME=PATH")
    return name, path


def _cmd_init(args: argparse.Namespace) -> int:
    from .config_edit import write_config
    from .paths import config_path, default_source_dir, expand_path

    cfg_path = config_path()
    if cfg_path.exists():
        print(f"error: already initialized. Config at: {cfg_path}")
        return 1

    explicit = [_parse_target_spec(spec) for spec in args.targets]

    source_raw = args.source or str(default_source_dir())
    source = expand_path(source_raw)
    source.mkdir(parents=True, exist_ok=True)

    targets: dict[str, TargetConfig] = {}
    if not args.no_detect:
        for name, raw in sorted(DEFAULT_TARGETS.items()):
            p = expand_path(raw)
            if p.is_dir():
                targets[name] = TargetConfig(path=raw)
                print(f"Found: {name} ({p})")
            elif p.parent.is_dir():
                targets[name] = TargetConfig(path=raw)
                print(f"Available: {name} ({p})")
    for name, path in explicit:
        targets[name] = TargetConfig(path=path)

    if not targets:
        print("warning: no targets configured; add one with `skillshare target add <name> <path>`")

    cfg = SkillshareConfig(source=str(source), mode=args.mode, targets=targets, ignore=("**/.DS_Store",))
    write_config(cfg_path, cfg)
    print(f"Source: {source}")
    print(f"Config: {cfg_path}")
    print("Run `skillshare sync` to sync your skills")
    return 0


def _print_sync_report(report) -> None:
    if report.dry_run:
        print("Dry run mode - no changes will be made")
    for r in report.results:
        if r.error:
            print(f"error: {r.name}: {r.error}")
            continue
        if r.whole is not None:
            print(f"{r.name}: {r.whole.action}")
            for n in r.whole.migrated:
                print(f"  migrated: {n}")
            continue
        m = r.merge
        assert m is not None
        if m.switched:
            print(f"{r.name}: switched from symlink mode")
        if m.linked or m.updated or m.pruned:
            print(
                f"{r.name}: merged ({len(m.linked)} linked, {len(m.skipped)} local, "
                f"{len(m.updated)} updated, {len(m.pruned)} pruned)"
            )
        elif m.skipped:
            print(f"{r.name}: merged ({len(m.skipped)} local skills preserved)")
        elif m.preserved:
            print(f"{r.name}: up to date ({len(m.preserved)} linked)")
        else:
            print(f"{r.name}: merged (no skills)")
        for e in m.errors:
            print(f"error: {r.name}: {e.name}: {e.message}")


def _cmd_sync(args: argparse.Namespace) -> int:
    from .reconcile import sync_targets

    cfg = _load_config()
    unknown = [n for n in args.targets if n not in cfg.targets]
    if unknown:
        print(f"error: target not found: {', '.join(unknown)}")
        return 1

    report = sync_targets(
        cfg.source_path,
        cfg.resolved_targets(args.targets or None),
        dry_run=bool(args.dry_run),
        force=bool(args.force),
        migrate=bool(args.migrate),
        ignore=cfg.ignore,
    )
    if args.json_output:
        print(json.dumps(report.to_dict(), indent=2, sort_keys=True))
    else:
        _print_sync_report(report)

    if report.ok:
        return 0
    # Conflicts are recoverable with --force; report them distinctly.
    if all(r.error_type == "ConflictError" for r in report.results if not r.ok):
        return 2
    return 1


def _cmd_status(args: argparse.Namespace) -> int:
    from .cli_status import collect_status, format_status

    info = collect_status(_load_config())
    if args.json_output:
        print(json.dumps(info.to_dict(), indent=2, sort_keys=True))
    else:
        print(format_status(info), end="")
    return 0


def _cmd_diff(args: argparse.Namespace) -> int:
    from .diff import diff_target
    from .discover import discover_units

    cfg = _load_config()
    if args.target is not None and args.target not in cfg.targets:
        print(f"error: target '{args.target}' not found")
        return 1

    source = cfg.source_path
    units = discover_units(source, ignore=cfg.ignore)
    diffs = [diff_target(t, source, units) for t in cfg.resolved_targets([args.target] if args.target else None)]

    if args.json_output:
        print(json.dumps([d.to_dict() for d in diffs], indent=2, sort_keys=True))
        return 0

    for d in diffs:
        print(f"Diff: {d.name}")
        if d.message:
            print(f"  {d.message}")
        for item in d.items:
            print(f"  {item.action:<7} {item.name}  {item.detail}")
    return 0


def _cmd_list(args: argparse.Namespace) -> int:
    from .discover import discover_units, tracked_repos

    cfg = _load_config()
    source = cfg.source_path
    units = discover_units(source, ignore=cfg.ignore)
    repos = tracked_repos(source)

    if args.json_output:
        out = {
            "skills": [u.to_dict() for u in units],
            "tracked_repos": {r: sum(1 for u in units if u.repo_name == r) for r in repos},
        }
        print(json.dumps(out, indent=2, sort_keys=True))
        return 0

    if not units and not repos:
        print("No skills installed")
        return 0

    if units:
        print("Installed skills")
        print("-" * 55)
        for u in units:
            if args.verbose:
                print(f"  {u.flat_name}")
                print(f"    Path: {u.source_path}")
                if u.repo_name:
                    print(f"    Tracked repo: {u.repo_name}")
            else:
                suffix = f"(tracked: {u.repo_name})" if u.repo_name else "(local)"
                print(f"  {u.flat_name:<30}  {suffix}")

    if repos:
        print()
        print("Tracked repositories")
        print("-" * 55)
        for r in repos:
            count = sum(1 for u in units if u.repo_name == r)
            print(f"  {r:<20}  {count} skills")
    return 0


def _cmd_collect(args: argparse.Namespace) -> int:
    from .collect import collect_skills, find_local_skills

    cfg = _load_config()
    if args.target is not None:
        if args.target not in cfg.targets:
            print(f"error: target '{args.target}' not found")
            return 1
        targets = cfg.resolved_targets([args.target])
    elif args.all_targets or len(cfg.targets) == 1:
        targets = cfg.resolved_targets()
    else:
        print("error: multiple targets found; specify a target name or use --all")
        for name in sorted(cfg.targets):
            print(f"  - {name}")
        return 1

    source = cfg.source_path
    skills = []
    for t in targets:
        try:
            skills.extend(find_local_skills(t, source))
        except SkillshareError as e:
            print(f"warning: {t.name}: {e}")

    result = collect_skills(skills, source, dry_run=bool(args.dry_run), force=bool(args.force))
    if args.json_output:
        out = {"skills": [s.to_dict() for s in skills], **result.to_dict()}
        print(json.dumps(out, indent=2, sort_keys=True))
        return 0 if not result.errors else 1

    if not skills:
        print("No local skills to collect")
        return 0

    print("Local skills found")
    for s in skills:
        print(f"  {s.name:<30}  [{s.target}] {s.path}")
    print()
    if result.dry_run:
        print("Dry run - no changes will be made")
    for n in result.collected:
        print(f"{n}: {'would be copied' if result.dry_run else 'copied'} to source")
    for n in result.skipped:
        print(f"{n}: skipped (already exists in source, use --force to overwrite)")
    for e in result.errors:
        print(f"error: {e.name}: {e.message}")
    if result.collected and not result.dry_run:
        print("Run `skillshare sync` to distribute to all targets")
    return 0 if not result.errors else 1


def _cmd_doctor(args: argparse.Namespace) -> int:
    from .doctor import run_doctor

    res = run_doctor()
    for c in res.checks:
        print(f"ok: {c}")
    for i in res.issues:
        print(f"{i.severity}: {i.message}")
        if i.fix_command:
            print(f"  fix: {i.fix_command}")
    if res.ok and not res.issues:
        print("All checks passed!")
    return 0 if res.ok else 1


def _cmd_target(args: argparse.Namespace) -> int:
    from .config_edit import add_target, remove_target
    from .paths import config_path

    if args.target_cmd == "add":
        add_target(config_path(), name=str(args.name), target_path=str(args.path), mode=args.mode)
        print(f"Added target: {args.name} -> {args.path}")
        return 0

    if args.target_cmd == "remove":
        remove_target(config_path(), name=str(args.name))
        print(f"Removed target: {args.name}")
        return 0

    if args.target_cmd == "list":
        cfg = _load_config()
        for t in cfg.resolved_targets():
            print(f"  {t.name:<12} {t.path} ({t.mode})")
        return 0

    raise AssertionError(f"unhandled target cmd: {args.target_cmd}")


def _run(args: argparse.Namespace) -> int:
    if args.cmd is None or args.cmd == "status":
        if args.cmd is None:
            args.json_output = False
        return _cmd_status(args)

    if args.cmd == "init":
        try:
            return _cmd_init(args)
        except ValueError as e:
            print(f"error: {e}")
            return 2

    if args.cmd == "sync":
        return _cmd_sync(args)

    if args.cmd == "diff":
        return _cmd_diff(args)

    if args.cmd == "list":
        return _cmd_list(args)

    if args.cmd == "collect":
        return _cmd_collect(args)

    if args.cmd == "doctor":
        return _cmd_doctor(args)

    if args.cmd == "target":
        return _cmd_target(args)

    raise AssertionError(f"unhandled cmd: {args.cmd}")


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
