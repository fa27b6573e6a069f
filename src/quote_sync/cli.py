import argparse
import asyncio
import sys
from typing import Iterable, Optional

from .app import QuoteSyncApp
from .config.settings import get_config, get_config_manager
from .core.models import ALL_CATEGORIES
from .layers.notification_layer.dispatcher import Notification
from .utils.enhanced_logger import setup_logging


def _print_notification(notification: Notification):
    print(str(notification), file=sys.stderr)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="quote-sync", description="Local-first quote collection with server sync")
    parser.add_argument("--config-dir", default="config", help="設定ディレクトリ (main.yaml, storage.yaml, sync_layer.yaml)")
    parser.add_argument("--no-push", action="store_true", help="追加した引用をサーバーへ送信しない")
    parser.add_argument("--session-id", help="直近表示の引用を起動をまたいで保持するセッションID")

    sub = parser.add_subparsers(dest="command", required=True)

    show = sub.add_parser("show", help="ランダムに1件表示")
    show.add_argument("--category", help="絞り込むカテゴリ（保存されている選択より優先）")

    add = sub.add_parser("add", help="引用を追加")
    add.add_argument("text")
    add.add_argument("category")

    listing = sub.add_parser("list", help="引用一覧")
    listing.add_argument("--category", help="絞り込むカテゴリ")

    sub.add_parser("last", help="このセッションで最後に表示した引用")
    sub.add_parser("end-session", help="セッションを終了し直近表示の記録を破棄")

    sub.add_parser("categories", help="カテゴリ一覧")

    select = sub.add_parser("filter", help="選択カテゴリを保存 (all で解除)")
    select.add_argument("category")

    imp = sub.add_parser("import", help="JSONファイルからインポート")
    imp.add_argument("file")

    exp = sub.add_parser("export", help="quotes.json へエクスポート")
    exp.add_argument("directory", nargs="?", help="出力先ディレクトリ")

    sub.add_parser("sync", help="サーバーと1回同期")

    run = sub.add_parser("run", help="定期同期を実行し続ける")
    run.add_argument("--cycles", type=int, help="指定回数の同期後に終了")

    sub.add_parser("init-config", help="設定テンプレートを作成")
    return parser


def _apply_category(app: QuoteSyncApp, category: Optional[str]) -> bool:
    if category is None:
        return True
    if not app.view.set_selected_category(category, app.categories()):
        print(f"Unknown category: {category}", file=sys.stderr)
        return False
    return True


async def run_command(app: QuoteSyncApp, args: argparse.Namespace) -> int:
    if args.command == "show":
        if not _apply_category(app, args.category):
            return 1
        quote = await app.show_random_quote()
        if quote is None:
            return 1
        print(quote.format_display())
        return 0

    if args.command == "last":
        if app.current_quote is None:
            print("No quote shown in this session", file=sys.stderr)
            return 1
        print(app.current_quote.format_display())
        return 0

    if args.command == "end-session":
        await app.end_session()
        return 0

    if args.command == "add":
        result = await app.add_quote(args.text, args.category)
        return 0 if result.success else 1

    if args.command == "list":
        if not _apply_category(app, args.category):
            return 1
        for quote in app.visible_quotes():
            print(f"[{quote.category}] {quote.text}")
        return 0

    if args.command == "categories":
        for category in [ALL_CATEGORIES] + app.categories():
            marker = "*" if category == app.selected_category else " "
            print(f"{marker} {category}")
        return 0

    if args.command == "filter":
        if not await app.select_category(args.category):
            print(f"Unknown category: {args.category}", file=sys.stderr)
            return 1
        return 0

    if args.command == "import":
        result = await app.import_file(args.file)
        return 0 if result.success else 1

    if args.command == "export":
        result = app.export_file(args.directory)
        if result.success:
            print(result.output_file)
        return 0 if result.success else 1

    if args.command == "sync":
        result = await app.sync_now()
        print(result.summary())
        return 0 if result.is_successful() else 1

    if args.command == "run":
        return await _run_forever(app, args.cycles)

    return 2


async def _run_forever(app: QuoteSyncApp, cycles: Optional[int]) -> int:
    await app.start()
    if not app.sync_service.running:
        print("Periodic sync is disabled (sync.enabled: false)", file=sys.stderr)
        return 1
    while cycles is None or app.sync_service.cycles_run < cycles:
        await asyncio.sleep(0.5)
    await app.sync_service.wait_for_cycles()
    return 0


def main(argv: Optional[Iterable[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    manager = get_config_manager(args.config_dir)
    if args.command == "init-config":
        manager.save_config_template()
        return 0

    # コマンドラインでの上書きがキャッシュに残らないよう毎回読み直す
    config = get_config(args.config_dir, reload=True)
    if args.no_push:
        config.sync.push_on_add = False
    if args.session_id:
        config.storage.session_id = args.session_id
    setup_logging({
        'level': config.logging.level,
        'file_path': config.logging.file_path,
        'structured': config.logging.structured,
        'metrics_enabled': config.logging.metrics_enabled,
    })

    async def _main() -> int:
        app = QuoteSyncApp(config)
        app.dispatcher.subscribe(_print_notification)
        if not await app.initialize():
            return 1
        try:
            return await run_command(app, args)
        finally:
            await app.shutdown()

    try:
        return asyncio.run(_main())
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
