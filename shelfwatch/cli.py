"""CLI entry point for shelfwatch."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from datetime import date

import httpx
from dotenv import load_dotenv

from .camera import BarcodeCamera
from .config import load_config
from .db import ProductStore
from .notify import create_notifier
from .recognition import create_recognizer
from .scanner import ExpiryScanner
from .view import DateRange, FILTERS, SORT_KEYS, apply_view, export_rows, reminders, status_of

_STATUS_LABELS = {
    "expired": "期限切れ",
    "soon": "期限間近",
    "active": "余裕あり",
}

# Raised by a notifier that cannot deliver: missing setup or an HTTP failure.
_SEND_ERRORS = (ValueError, httpx.HTTPError)


def _iso_date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(
            f"日付は YYYY-MM-DD 形式で指定してください: {value}"
        ) from None


def _add_view_arguments(p: argparse.ArgumentParser) -> None:
    p.add_argument(
        "--filter", choices=FILTERS, default="all",
        help="all / soon (7日以内) / expired",
    )
    p.add_argument("--search", type=str, default="", help="商品名・バーコードで検索")
    p.add_argument("--start", type=_iso_date, default=None, help="期限日の開始 (YYYY-MM-DD)")
    p.add_argument("--end", type=_iso_date, default=None, help="期限日の終了 (YYYY-MM-DD)")
    p.add_argument("--sort", choices=SORT_KEYS, default="expiry", help="並び順")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="shelfwatch",
        description="賞味期限トラッカー — バーコードやラベルから期限を読み取り、期限間近の商品を通知します",
    )
    parser.add_argument(
        "--config", "-c", type=str, default=None,
        help="設定ファイルのパス (TOML)",
    )
    parser.add_argument(
        "--user", "-u", type=str, default=None,
        help="ユーザー ID (設定ファイルの値を上書き)",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="詳細ログを表示",
    )

    sub = parser.add_subparsers(dest="command")

    # cameras
    sub.add_parser("cameras", help="利用可能なカメラ一覧を表示")

    # scan
    scan_parser = sub.add_parser("scan", help="バーコード/ラベルから期限を読み取って登録")
    scan_parser.add_argument(
        "--payload", type=str, default=None,
        help="バーコードの内容を直接指定 (省略時はカメラで読み取り)",
    )
    scan_parser.add_argument(
        "--barcode-image", type=str, default=None,
        help="バーコードを撮影した画像ファイル",
    )
    scan_parser.add_argument(
        "--label-image", type=str, default=None,
        help="ラベルを撮影した画像ファイル (省略時はカメラで撮影)",
    )
    scan_parser.add_argument("--name", type=str, default="", help="商品名")
    scan_parser.add_argument("--json", action="store_true", help="JSON形式で出力")

    # add
    add_parser = sub.add_parser("add", help="期限日を手動で登録")
    add_parser.add_argument("--barcode", type=str, required=True, help="バーコード")
    add_parser.add_argument("--name", type=str, required=True, help="商品名")
    add_parser.add_argument("--expiry", type=_iso_date, required=True, help="期限日 (YYYY-MM-DD)")

    # list
    list_parser = sub.add_parser("list", help="登録済みの商品を表示")
    _add_view_arguments(list_parser)
    list_parser.add_argument("--json", action="store_true", help="JSON形式で出力")

    # reminders
    rem_parser = sub.add_parser("reminders", help="期限間近・期限切れの商品を表示")
    rem_parser.add_argument("--json", action="store_true", help="JSON形式で出力")

    # export
    export_parser = sub.add_parser("export", help="表示中の商品を CSV に出力")
    _add_view_arguments(export_parser)
    export_parser.add_argument(
        "--output", "-o", type=str, default=None, metavar="FILE",
        help="出力ファイル (省略時は設定ファイルの値)",
    )
    export_parser.add_argument(
        "--drive", action="store_true", help="Google Drive にアップロード",
    )
    export_parser.add_argument(
        "--drive-folder", type=str, default=None, help="Google Drive のフォルダ ID",
    )

    # rename
    rename_parser = sub.add_parser("rename", help="商品名を変更")
    rename_parser.add_argument("barcode", type=str)
    rename_parser.add_argument("name", type=str)

    # set-expiry
    expiry_parser = sub.add_parser("set-expiry", help="期限日を変更")
    expiry_parser.add_argument("barcode", type=str)
    expiry_parser.add_argument("expiry", type=_iso_date)

    # delete
    delete_parser = sub.add_parser("delete", help="商品を削除")
    delete_parser.add_argument("barcode", type=str)

    # remind
    sub.add_parser("remind", help="今すぐリマインダーを送信")

    # daemon
    sub.add_parser("daemon", help="スケジューラーを起動して毎日リマインダーを送信")

    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    load_dotenv()

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = load_config(args.config)
    user_id = args.user or config.user.id

    if args.command == "cameras":
        _cmd_cameras()
        return
    if args.command == "daemon":
        _cmd_daemon(config)
        return

    store = ProductStore(config.database.path)
    try:
        match args.command:
            case "scan":
                asyncio.run(_cmd_scan(config, store, user_id, args))
            case "add":
                asyncio.run(_cmd_add(config, store, user_id, args))
            case "list":
                _cmd_list(store, user_id, args)
            case "reminders":
                _cmd_reminders(store, user_id, args)
            case "export":
                _cmd_export(config, store, user_id, args)
            case "rename":
                _cmd_edit("更新しました。", store.rename_product, user_id, args.barcode, args.name)
            case "set-expiry":
                _cmd_edit("更新しました。", store.update_expiry, user_id, args.barcode, args.expiry)
            case "delete":
                _cmd_edit("削除しました。", store.delete_product, user_id, args.barcode)
            case "remind":
                asyncio.run(_cmd_remind(config, store, user_id))
    finally:
        store.close()


def _cmd_cameras() -> None:
    cameras = BarcodeCamera.list_cameras()
    if not cameras:
        print("利用可能なカメラが見つかりませんでした。")
        return
    print(f"利用可能なカメラ: {len(cameras)} 台")
    for idx in cameras:
        print(f"  カメラ {idx}")


def _open_notifier(config):
    try:
        return create_notifier(config)
    except ValueError as e:
        print(str(e), file=sys.stderr)
        sys.exit(1)


def _report_send_failure(error: Exception) -> None:
    print(f"通知を送信できませんでした: {error}", file=sys.stderr)
    sys.exit(1)


def _outcome_to_dict(outcome) -> dict:
    result = outcome.outcome
    data: dict = {"status": type(result).__name__}
    if outcome.record is not None:
        data.update({
            "barcode": outcome.record.barcode,
            "product_name": outcome.record.product_name,
            "type": result.type,
            "expiry_date": result.expiry_date.isoformat(),
            "days_left": result.days_left,
            "notified": outcome.record.notified,
        })
    elif hasattr(result, "reason"):
        data["reason"] = result.reason
    return data


def _print_outcome(outcome) -> None:
    if outcome.record is not None:
        result = outcome.outcome
        print(f"✅ 登録しました: {outcome.record.barcode}")
        print(f"   期限タイプ: {result.type}")
        print(f"   期限日:     {result.expiry_date.isoformat()}")
        print(f"   残り日数:   {result.days_left}")
        if outcome.alert is not None:
            print(f"🔔 {outcome.alert.title}: {outcome.alert.body}")
        return

    reason = getattr(outcome.outcome, "reason", "")
    print("✍  期限日を読み取れませんでした。手動で登録してください:")
    if reason:
        print(f"   ({reason})")
    print("   shelfwatch add --barcode <バーコード> --name <商品名> --expiry YYYY-MM-DD")


async def _cmd_scan(config, store, user_id, args) -> None:
    camera = None

    def get_camera() -> BarcodeCamera:
        nonlocal camera
        if camera is None:
            camera = BarcodeCamera(
                camera_index=config.camera.index,
                save_dir=config.camera.save_dir,
            )
        return camera

    # Read barcode
    payload = args.payload
    if payload is None:
        try:
            if args.barcode_image:
                payload = BarcodeCamera.read_barcode(args.barcode_image)
            else:
                print("📷 バーコードを撮影中...")
                _, payload = get_camera().scan_barcode()
        except (RuntimeError, FileNotFoundError, ImportError) as e:
            print(str(e), file=sys.stderr)
            sys.exit(1)
        if not payload:
            print("バーコードを読み取れませんでした。", file=sys.stderr)
            sys.exit(1)
        print(f"   読み取り: {payload}")

    today = date.today()
    notifier = _open_notifier(config)
    try:
        scanner = ExpiryScanner(store, notifier, user_id)
        outcome = await scanner.handle_barcode(payload, today, product_name=args.name)

        if outcome.needs_image_scan:
            # Fall back to the label photo
            if args.label_image:
                image_path = args.label_image
            else:
                print("📷 ラベルを撮影中...")
                try:
                    image_path = get_camera().capture(prefix="label").image_path
                except (RuntimeError, ImportError) as e:
                    print(str(e), file=sys.stderr)
                    sys.exit(1)
            recognizer = None
            try:
                recognizer = create_recognizer(config)
            except ValueError as e:
                print(f"文字認識エラー: {e}", file=sys.stderr)
            scanner = ExpiryScanner(store, notifier, user_id, recognizer=recognizer)
            print("🔍 ラベルを読み取り中...")
            outcome = await scanner.handle_label(
                payload, image_path, today, product_name=args.name
            )
    except _SEND_ERRORS as e:
        _report_send_failure(e)
    finally:
        await notifier.close()

    if args.json:
        print(json.dumps(_outcome_to_dict(outcome), ensure_ascii=False, indent=2))
    else:
        _print_outcome(outcome)


async def _cmd_add(config, store, user_id, args) -> None:
    notifier = _open_notifier(config)
    try:
        scanner = ExpiryScanner(store, notifier, user_id)
        outcome = await scanner.add_manual(
            args.barcode, args.name, args.expiry, date.today()
        )
    except ValueError as e:
        print(str(e), file=sys.stderr)
        sys.exit(1)
    finally:
        await notifier.close()
    _print_outcome(outcome)


def _view_from_args(store, user_id, args):
    date_range = None
    if args.start or args.end:
        date_range = DateRange(start=args.start, end=args.end)
    return apply_view(
        store.list_products(user_id),
        today=date.today(),
        filter=args.filter,
        search=args.search,
        date_range=date_range,
        sort_key=args.sort,
    )


def _record_to_dict(r) -> dict:
    return {
        "barcode": r.barcode,
        "product_name": r.product_name,
        "expiry_date": r.expiry_date.isoformat(),
        "days_left": r.days_left,
        "type": r.type,
        "notified": r.notified,
        "status": status_of(r.days_left),
    }


def _print_records(records) -> None:
    for r in records:
        label = _STATUS_LABELS[status_of(r.days_left)]
        print(
            f"  {r.display_name:<16} {r.barcode:<20} "
            f"{r.expiry_date.isoformat()}  残り {r.days_left:>4} 日  [{label}]"
        )


def _cmd_list(store, user_id, args) -> None:
    view = _view_from_args(store, user_id, args)

    if args.json:
        data = {
            "counts": {
                "total": view.counts.total,
                "expired": view.counts.expired,
                "expiring_soon": view.counts.expiring_soon,
                "active": view.counts.active,
            },
            "products": [_record_to_dict(r) for r in view.records],
        }
        print(json.dumps(data, ensure_ascii=False, indent=2))
        return

    c = view.counts
    print(
        f"合計: {c.total}  期限切れ: {c.expired}  "
        f"期限間近: {c.expiring_soon}  余裕あり: {c.active}"
    )
    if not view.records:
        print("該当する商品はありません。")
        return
    _print_records(view.records)


def _cmd_reminders(store, user_id, args) -> None:
    due = reminders(store.list_products(user_id), date.today())
    if args.json:
        print(json.dumps([_record_to_dict(r) for r in due], ensure_ascii=False, indent=2))
        return
    if not due:
        print("期限が近い商品はありません 🎉")
        return
    print(f"⏰ 期限が近い商品 ({len(due)} 品):")
    _print_records(due)


def _cmd_export(config, store, user_id, args) -> None:
    from .export import write_csv

    view = _view_from_args(store, user_id, args)
    output = args.output or config.export.path
    try:
        path = write_csv(export_rows(view.records), output)
    except ValueError as e:
        print(str(e), file=sys.stderr)
        sys.exit(1)
    print(f"📄 CSV 保存: {path} ({len(view.records)} 件)")

    if args.drive or config.gdrive.enabled:
        from .gdrive import DriveCsvShare

        print("☁  Google Drive で共有中...")
        try:
            share = DriveCsvShare.from_config(config.gdrive)
            file_id = share.upload_csv(path, folder_id=args.drive_folder or None)
            print(f"   アップロード完了 (File ID: {file_id})")
        except (ImportError, FileNotFoundError) as e:
            print(f"Google Drive エラー: {e}", file=sys.stderr)
            sys.exit(1)


def _cmd_edit(message, operation, user_id, *args) -> None:
    try:
        operation(user_id, *args)
    except KeyError:
        print(f"商品が見つかりません: {args[0]}", file=sys.stderr)
        sys.exit(1)
    print(message)


async def _cmd_remind(config, store, user_id) -> None:
    from .scheduler import run_daily_sweep

    notifier = _open_notifier(config)
    try:
        request = await run_daily_sweep(store, notifier, user_id, date.today())
    except _SEND_ERRORS as e:
        _report_send_failure(e)
    finally:
        await notifier.close()
    if request is None:
        print("期限が近い商品はありません 🎉")
    else:
        print(f"🔔 {request.title}: {request.body}")


def _cmd_daemon(config) -> None:
    from .scheduler import ReminderScheduler

    async def run() -> None:
        scheduler = ReminderScheduler(config)
        scheduler.start()
        for job in scheduler.get_jobs():
            print(f"⏰ {job['name']} 次回実行: {job['next_run']}")
        try:
            await asyncio.Event().wait()
        finally:
            scheduler.stop()

    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        pass
