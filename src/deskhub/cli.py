"""Command line interface for deskhub."""

from __future__ import annotations

import argparse
import json
import sys
import time
from pathlib import Path

import yaml

from .config import get_config_value, read_yaml, set_config_value, write_yaml
from .core import DeskhubCore


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="deskhub", description="deskhub 多專案桌面殼層資源服務 CLI")
    parser.add_argument(
        "--data-dir",
        default=None,
        help="指定 deskhub 資料夾位置（預設 ~/.deskhub）",
    )
    parser.add_argument(
        "--mode",
        choices=["development", "packaged"],
        default=None,
        help="資源目錄模式（覆寫 shell.mode）",
    )
    parser.add_argument("--resource-dir", default=None, help="packaged 模式使用的資源目錄")

    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("init", help="初始化 deskhub 資料夾")

    config_parser = subparsers.add_parser("config", help="設定管理")
    config_sub = config_parser.add_subparsers(dest="config_command")
    config_get = config_sub.add_parser("get", help="讀取設定")
    config_get.add_argument("key", help="設定鍵（例如 gateway.port）")
    config_set = config_sub.add_parser("set", help="更新設定")
    config_set.add_argument("key", help="設定鍵（例如 gateway.port）")
    config_set.add_argument("value", help="設定值（會以 YAML 解析）")
    config_show = config_sub.add_parser("show", help="顯示合併後設定")
    config_show.add_argument("--sources", action="store_true", help="一併顯示設定來源")

    projects_parser = subparsers.add_parser("projects", help="專案清單")
    projects_sub = projects_parser.add_subparsers(dest="projects_command")
    projects_sub.add_parser("list", help="列出專案")

    resolve_parser = subparsers.add_parser("resolve", help="解析資源 locator")
    resolve_parser.add_argument("locator", help="例如 myapp://studio/index.html")
    resolve_parser.add_argument("--body", action="store_true", help="輸出回應內容")

    gateway_parser = subparsers.add_parser("gateway", help="啟動單一埠 gateway")
    gateway_parser.add_argument("--host", default=None, help="綁定位址")
    gateway_parser.add_argument("--port", type=int, default=None, help="綁定埠號")

    listeners_parser = subparsers.add_parser("listeners", help="為每個專案啟動獨立埠")
    listeners_parser.add_argument("--host", default=None, help="綁定位址")

    return parser


def _cli_overrides(args: argparse.Namespace) -> dict:
    shell: dict = {}
    if args.mode:
        shell["mode"] = args.mode
    if args.resource_dir:
        shell["packaged_resource_dir"] = args.resource_dir
    return {"shell": shell} if shell else {}


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    data_dir = Path(args.data_dir).expanduser() if args.data_dir else None
    try:
        core = DeskhubCore(data_dir=data_dir, cli_overrides=_cli_overrides(args))
    except (ValueError, RuntimeError) as exc:
        print(f"設定錯誤：{exc}", file=sys.stderr)
        return 2

    try:
        if args.command == "init":
            core.initialize()
            print("已完成初始化")
        elif args.command == "config":
            _handle_config(core, args)
        elif args.command == "projects":
            _handle_projects(core)
        elif args.command == "resolve":
            return _handle_resolve(core, args)
        elif args.command == "gateway":
            from .gateway import serve_gateway

            serve_gateway(core, host=args.host, port=args.port)
        elif args.command == "listeners":
            _handle_listeners(core, args)
        else:
            parser.print_help()
    except Exception as exc:  # noqa: BLE001
        core.logger.error("執行失敗：%s", exc, exc_info=True)
        print("發生錯誤，請查看 logs/runtime.log 取得詳細資訊。", file=sys.stderr)
        return 1
    return 0


def _handle_config(core: DeskhubCore, args: argparse.Namespace) -> None:
    if args.config_command == "get":
        value = get_config_value(core.config, args.key)
        if isinstance(value, (dict, list)):
            print(yaml.safe_dump(value, allow_unicode=True, sort_keys=False).strip())
        else:
            print(value)
    elif args.config_command == "set":
        path = core.config_loader.global_config_path()
        config = read_yaml(path)
        set_config_value(config, args.key, yaml.safe_load(args.value))
        write_yaml(path, config)
        print(f"已更新 {args.key}")
    elif args.config_command == "show":
        resolution = core.config_loader.resolve(core.cli_overrides)
        payload = resolution.annotated() if args.sources else resolution.effective
        print(yaml.safe_dump(payload, allow_unicode=True, sort_keys=False).strip())
    else:
        print("請指定 config 子命令（get/set/show）")


def _handle_projects(core: DeskhubCore) -> None:
    for project in core.catalog:
        asset_dir = project.asset_dir(core.resource_root)
        status = "ok" if asset_dir.is_dir() else "missing"
        port = project.port if project.port is not None else "-"
        print(f"{project.id}\t{project.name}\tport={port}\t{status}\t{asset_dir}")


def _handle_resolve(core: DeskhubCore, args: argparse.Namespace) -> int:
    response = core.commands.resolve_resource(args.locator)
    summary = {
        "status": response.status,
        "content_type": response.content_type,
        "length": len(response.body),
    }
    if response.resource is not None:
        summary["path"] = str(response.resource.path)
        summary["rewritten"] = response.resource.rewritten
    print(json.dumps(summary, ensure_ascii=False))
    if args.body:
        sys.stdout.buffer.write(response.body)
        sys.stdout.flush()
    return 0 if response.ok else 1


def _handle_listeners(core: DeskhubCore, args: argparse.Namespace) -> None:
    from .listener import start_project_listeners

    listeners_cfg = core.config.get("listeners") or {}
    host = args.host or str(listeners_cfg.get("host") or "127.0.0.1")
    group = start_project_listeners(
        core.catalog,
        core.resource_root,
        host=host,
        home_nav=core.resources.home_nav,
        fragment=core.resources.fragment,
        scheme=core.scheme,
    )
    for project_id, port in group.ports().items():
        print(f"✅ {project_id} 伺服器啟動在 http://{host}:{port}")
    for project_id, reason in group.skipped.items():
        print(f"⚠️ 略過 {project_id}：{reason}")
    if not group.listeners:
        print("沒有可啟動的專案伺服器")
        return
    print("按 Ctrl+C 停止所有伺服器")
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        print("正在關閉所有伺服器...")
    finally:
        group.stop()


if __name__ == "__main__":
    sys.exit(main())
