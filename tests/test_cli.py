"""Tests for the shelfwatch CLI (mocked camera, log or Discord notifier)."""

import json
import sys
from datetime import date, timedelta
from unittest.mock import MagicMock, patch

import pytest

from shelfwatch.cli import build_parser, main
from shelfwatch.db import ProductStore


def _write_config(tmp_path, notifications='backend = "log"', extra=""):
    path = tmp_path / "config.toml"
    path.write_text(
        f'[database]\npath = "{(tmp_path / "products.db").as_posix()}"\n\n'
        '[user]\nid = "alice"\n\n'
        f'[camera]\nsave_dir = "{(tmp_path / "captures").as_posix()}"\n\n'
        f"[notifications]\n{notifications}\n\n"
        f"{extra}",
        encoding="utf-8",
    )
    return path


@pytest.fixture
def config_path(tmp_path):
    return _write_config(tmp_path)


@pytest.fixture
def discord_config_path(tmp_path, monkeypatch):
    """Discord backend with no webhook configured anywhere."""
    monkeypatch.delenv("DISCORD_WEBHOOK_URL", raising=False)
    return _write_config(tmp_path, notifications='backend = "discord"')


@pytest.fixture
def mock_cv2():
    mock = MagicMock()
    with patch.dict(sys.modules, {"cv2": mock}):
        yield mock


def _run(config_path, *args):
    main(["--config", str(config_path), *args])


def _gs1(days):
    return "(17)" + (date.today() + timedelta(days=days)).strftime("%y%m%d")


def _stored(tmp_path, user="alice"):
    store = ProductStore(tmp_path / "products.db")
    try:
        return store.list_products(user)
    finally:
        store.close()


def test_no_command_prints_help(capsys):
    with pytest.raises(SystemExit) as exc:
        main([])
    assert exc.value.code == 1
    assert "usage" in capsys.readouterr().out


def test_parser_rejects_bad_date():
    with pytest.raises(SystemExit):
        build_parser().parse_args(
            ["add", "--barcode", "1", "--name", "x", "--expiry", "2025-02-30"]
        )


def test_scan_gs1_payload(config_path, tmp_path, capsys):
    _run(config_path, "scan", "--payload", _gs1(100), "--name", "ヨーグルト", "--json")

    data = json.loads(capsys.readouterr().out)
    assert data["status"] == "Gs1Expiry"
    assert data["type"] == "GS1"
    assert data["days_left"] == 100
    assert data["notified"] is False

    [record] = _stored(tmp_path)
    assert record.product_name == "ヨーグルト"


def test_scan_near_expiry_alerts(config_path, tmp_path, capsys):
    _run(config_path, "scan", "--payload", _gs1(2), "--name", "牛乳")

    out = capsys.readouterr().out
    assert "期限アラート" in out
    assert "牛乳: 期限まであと 2 日です!" in out
    assert _stored(tmp_path)[0].notified is True


def test_scan_invalid_gs1_asks_for_manual_entry(config_path, tmp_path, capsys):
    _run(config_path, "scan", "--payload", "(17)250230", "--json")

    data = json.loads(capsys.readouterr().out)
    assert data["status"] == "InvalidDate"
    assert _stored(tmp_path) == []


def test_add_and_list(config_path, tmp_path, capsys):
    soon = (date.today() + timedelta(days=3)).isoformat()
    later = (date.today() + timedelta(days=30)).isoformat()
    _run(config_path, "add", "--barcode", "111", "--name", "豆腐", "--expiry", soon)
    _run(config_path, "add", "--barcode", "222", "--name", "米", "--expiry", later)
    capsys.readouterr()

    _run(config_path, "list", "--json")
    data = json.loads(capsys.readouterr().out)
    assert data["counts"] == {"total": 2, "expired": 0, "expiring_soon": 1, "active": 1}
    assert [p["barcode"] for p in data["products"]] == ["111", "222"]
    assert data["products"][0]["type"] == "Manual"

    _run(config_path, "list", "--filter", "soon")
    out = capsys.readouterr().out
    assert "豆腐" in out
    assert "米" not in out


def test_user_override(config_path, tmp_path, capsys):
    expiry = (date.today() + timedelta(days=3)).isoformat()
    _run(config_path, "--user", "bob", "add", "--barcode", "1", "--name", "卵", "--expiry", expiry)

    assert _stored(tmp_path, "alice") == []
    assert len(_stored(tmp_path, "bob")) == 1


def test_reminders_and_remind(config_path, capsys):
    soon = (date.today() + timedelta(days=1)).isoformat()
    _run(config_path, "add", "--barcode", "111", "--name", "豆腐", "--expiry", soon)
    capsys.readouterr()

    _run(config_path, "reminders", "--json")
    due = json.loads(capsys.readouterr().out)
    assert [d["barcode"] for d in due] == ["111"]

    _run(config_path, "remind")
    assert "豆腐: 期限まであと 1 日です。" in capsys.readouterr().out


def test_remind_nothing_due(config_path, capsys):
    _run(config_path, "remind")
    assert "期限が近い商品はありません" in capsys.readouterr().out


def test_export(config_path, tmp_path, capsys):
    expiry = (date.today() + timedelta(days=5)).isoformat()
    _run(config_path, "add", "--barcode", "111", "--name", "豆腐", "--expiry", expiry)

    output = tmp_path / "out.csv"
    _run(config_path, "export", "--output", str(output))

    lines = output.read_text(encoding="utf-8").splitlines()
    assert lines == [
        '"Product Name","Barcode","Expiry Date","Days Left"',
        f'"豆腐","111","{expiry}","5"',
    ]


def test_export_empty_view_fails(config_path, tmp_path, capsys):
    with pytest.raises(SystemExit) as exc:
        _run(config_path, "export", "--output", str(tmp_path / "out.csv"))
    assert exc.value.code == 1
    assert "商品がありません" in capsys.readouterr().err


def test_rename_set_expiry_delete(config_path, tmp_path, capsys):
    expiry = (date.today() + timedelta(days=5)).isoformat()
    _run(config_path, "scan", "--payload", _gs1(40))
    barcode = _stored(tmp_path)[0].barcode

    _run(config_path, "rename", barcode, "チーズ")
    _run(config_path, "set-expiry", barcode, expiry)
    [record] = _stored(tmp_path)
    assert record.product_name == "チーズ"
    assert record.type == "Manual"
    assert record.expiry_date.isoformat() == expiry

    _run(config_path, "delete", barcode)
    assert _stored(tmp_path) == []


def test_edit_missing_product(config_path, capsys):
    with pytest.raises(SystemExit) as exc:
        _run(config_path, "delete", "missing")
    assert exc.value.code == 1
    assert "商品が見つかりません" in capsys.readouterr().err


class TestCollaboratorErrors:
    def test_unreadable_barcode_image(self, config_path, mock_cv2, capsys):
        mock_cv2.imread.return_value = None
        with pytest.raises(SystemExit) as exc:
            _run(config_path, "scan", "--barcode-image", "/nope.jpg")
        assert exc.value.code == 1
        assert "画像を読み込めません" in capsys.readouterr().err

    def test_camera_unavailable(self, config_path, mock_cv2, capsys):
        mock_cv2.VideoCapture.return_value.isOpened.return_value = False
        with pytest.raises(SystemExit) as exc:
            _run(config_path, "scan")
        assert exc.value.code == 1
        assert "カメラ 0" in capsys.readouterr().err

    def test_label_camera_unavailable(self, config_path, tmp_path, mock_cv2, capsys):
        mock_cv2.VideoCapture.return_value.isOpened.return_value = False
        with pytest.raises(SystemExit) as exc:
            _run(config_path, "scan", "--payload", "4901234567894")
        assert exc.value.code == 1
        assert "カメラ 0" in capsys.readouterr().err
        assert _stored(tmp_path) == []

    def test_alert_without_webhook(self, discord_config_path, tmp_path, capsys):
        with pytest.raises(SystemExit) as exc:
            _run(discord_config_path, "scan", "--payload", _gs1(1))
        assert exc.value.code == 1
        assert "Webhook URL" in capsys.readouterr().err
        # The product is stored even though the alert could not be sent
        [record] = _stored(tmp_path)
        assert record.notified is False

    def test_far_expiry_needs_no_webhook(self, discord_config_path, tmp_path, capsys):
        _run(discord_config_path, "scan", "--payload", _gs1(60))
        assert len(_stored(tmp_path)) == 1

    def test_remind_without_webhook(self, discord_config_path, tmp_path, capsys):
        expiry = (date.today() + timedelta(days=1)).isoformat()
        _run(discord_config_path, "add", "--barcode", "1", "--name", "卵", "--expiry", expiry)
        with pytest.raises(SystemExit) as exc:
            _run(discord_config_path, "remind")
        assert exc.value.code == 1
        assert "通知を送信できませんでした" in capsys.readouterr().err

    def test_unknown_notification_backend(self, tmp_path, capsys):
        path = _write_config(tmp_path, notifications='backend = "pager"')
        expiry = (date.today() + timedelta(days=1)).isoformat()
        with pytest.raises(SystemExit) as exc:
            _run(path, "add", "--barcode", "1", "--name", "卵", "--expiry", expiry)
        assert exc.value.code == 1
        assert "不明な通知バックエンド" in capsys.readouterr().err
        assert _stored(tmp_path) == []


class TestExportSharing:
    def _add_one(self, path):
        expiry = (date.today() + timedelta(days=5)).isoformat()
        _run(path, "add", "--barcode", "111", "--name", "豆腐", "--expiry", expiry)

    def test_gdrive_enabled_uploads_without_flag(self, tmp_path, capsys):
        path = _write_config(tmp_path, extra='[gdrive]\nenabled = true\nfolder_id = "f1"\n')
        self._add_one(path)
        output = tmp_path / "out.csv"

        with patch("shelfwatch.gdrive.DriveCsvShare.upload_csv", return_value="file_1") as upload:
            _run(path, "export", "--output", str(output))

        upload.assert_called_once_with(output, folder_id=None)
        assert "file_1" in capsys.readouterr().out

    def test_drive_flag_with_folder(self, config_path, tmp_path, capsys):
        self._add_one(config_path)
        output = tmp_path / "out.csv"

        with patch("shelfwatch.gdrive.DriveCsvShare.upload_csv", return_value="file_2") as upload:
            _run(config_path, "export", "--output", str(output), "--drive", "--drive-folder", "f2")

        upload.assert_called_once_with(output, folder_id="f2")

    def test_gdrive_disabled_no_upload(self, config_path, tmp_path):
        self._add_one(config_path)

        with patch("shelfwatch.gdrive.DriveCsvShare.upload_csv") as upload:
            _run(config_path, "export", "--output", str(tmp_path / "out.csv"))

        upload.assert_not_called()

    def test_missing_credentials_reported(self, tmp_path, capsys):
        path = _write_config(
            tmp_path,
            extra=(
                "[gdrive]\nenabled = true\n"
                f'credentials_path = "{(tmp_path / "none.json").as_posix()}"\n'
                f'token_path = "{(tmp_path / "token.json").as_posix()}"\n'
            ),
        )
        self._add_one(path)

        with patch(
            "shelfwatch.gdrive.DriveCsvShare.upload_csv",
            side_effect=FileNotFoundError("OAuth クレデンシャルファイルが見つかりません"),
        ):
            with pytest.raises(SystemExit) as exc:
                _run(path, "export", "--output", str(tmp_path / "out.csv"))
        assert exc.value.code == 1
        assert "Google Drive エラー" in capsys.readouterr().err
