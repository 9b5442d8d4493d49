import json

import httpx
import pytest

from kalshi_watch.cli.watchctl import build_parser, run_command


def run(argv, handler):
    args = build_parser().parse_args(argv)
    with httpx.Client(base_url="http://test", transport=httpx.MockTransport(handler)) as client:
        return run_command(client, args)


def test_stoploss_posts_watch(capsys):
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(
            201,
            json={"ticker": "TICKER-B", "side": "no", "mode": "stop_loss", "base_price": 0.6, "trigger_price": 0.48},
        )

    assert run(["stoploss", "alice", "TICKER-B", "no", "20", "--base", "0.60"], handler) == 0
    body = json.loads(seen[0].content)
    assert seen[0].url.path == "/watches"
    assert body == {
        "user_id": "alice",
        "ticker": "TICKER-B",
        "side": "no",
        "mode": "stop_loss",
        "threshold_percent": 20.0,
        "base_price": 0.60,
    }
    assert "fires at $0.4800" in capsys.readouterr().out


def test_link_reads_key_file(tmp_path, private_pem):
    key_file = tmp_path / "kalshi.pem"
    key_file.write_text(private_pem)
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"linked": True})

    assert run(["link", "alice", "--api-key", "key-123", "--key-file", str(key_file)], handler) == 0
    assert seen[0].method == "PUT"
    assert json.loads(seen[0].content)["private_key"] == private_pem


def test_list_prints_watches(capsys):
    def handler(request):
        return httpx.Response(
            200,
            json=[{"ticker": "TICKER-A", "side": "yes", "mode": "alert", "threshold_percent": 10, "base_price": 0.4, "status": "active"}],
        )

    assert run(["list", "alice"], handler) == 0
    out = capsys.readouterr().out
    assert "TICKER-A" in out
    assert "10% from $0.4000 [active]" in out


def test_stop_unknown_watch_fails(capsys):
    assert run(["stop", "alice", "TICKER-A", "yes"], lambda r: httpx.Response(404)) == 1
    assert "No active watch" in capsys.readouterr().err


def test_server_error_is_reported(capsys):
    assert run(["stop-all", "alice"], lambda r: httpx.Response(500, text="boom")) == 1
    assert "HTTP error: 500" in capsys.readouterr().err


def test_side_is_validated():
    with pytest.raises(SystemExit):
        build_parser().parse_args(["alert", "alice", "T", "maybe", "10", "--base", "0.4"])
