"""
HTTP API 冒烟测试（FastAPI TestClient，进程内调用，不启动 uvicorn）。

依赖：
- httpx（TestClient 需要；见 pyproject 的 test extra）

用法：
  python scripts/test_api_server.py
"""

from __future__ import annotations

from pathlib import Path
import sys


REPO_ROOT = Path(__file__).resolve().parents[1]


def _ensure_backend_src_on_path(repo_root: Path) -> None:
    src_dir = repo_root / "backend" / "src"
    if not src_dir.exists():
        raise RuntimeError(f"找不到 backend/src：{src_dir}")
    if str(src_dir) not in sys.path:
        sys.path.insert(0, str(src_dir))


_ensure_backend_src_on_path(REPO_ROOT)

from fastapi.testclient import TestClient  # noqa: E402

from handpanconf_backend.api.server import app  # noqa: E402


client = TestClient(app)

KURD_9 = "D3/A-Bb-C-D-E-F-G-A"


def test_health_and_catalogues() -> None:
    assert client.get("/health").json() == {"status": "ok"}

    scales = {s["scale_id"]: s for s in client.get("/scales").json()}
    assert scales["kurd"]["configurator"] is True
    assert scales["celtic"]["configurator"] is False

    r = client.get("/scales/kurd/patterns/9")
    assert r.status_code == 200 and r.json()["layout"].startswith("D/")
    assert client.get("/scales/celtic/patterns/9").status_code == 404
    assert client.get("/scales/nope/patterns/9").status_code == 404

    shells = client.get("/shells").json()
    assert shells["default_size"] == "53"
    assert 440 in shells["tuning_standards"]


def test_layout_endpoints() -> None:
    r = client.post("/layout/parse", json={"layout": KURD_9})
    assert r.status_code == 200
    body = r.json()
    assert body["canonical_layout"] == "D3/A3-A#3-C4-D4-E4-F4-G4-A4"
    assert body["notes"][0]["role"] == "ding"

    bad = client.post("/layout/parse", json={"layout": "D3"})
    assert bad.status_code == 400
    # 推断出 C10：无法写成规范布局
    assert client.post("/layout/parse", json={"layout": "C/C-C-C-C-C-C-C-C"}).status_code == 400

    d = client.post("/layout/diagram", json={"layout": KURD_9, "size_px": 400}).json()
    assert d["size"] == 400 and len(d["notes"]) == 9

    assert client.post("/layout/parse", json={"layout": ""}).status_code == 422


def test_feasibility_endpoints() -> None:
    r = client.post("/feasibility", json={"layout": KURD_9, "size_category": "45"}).json()
    assert r["status"] == "difficult"

    t = client.post("/feasibility/tonalities", json={"scale_pattern_id": "kurd", "note_count": 9, "size_category": "53"})
    assert t.status_code == 200
    assert t.json()["D#3"]["status"] == "impossible"
    missing = client.post("/feasibility/tonalities", json={"scale_pattern_id": "nope", "note_count": 9, "size_category": "53"})
    assert missing.status_code == 404


def test_price_endpoint() -> None:
    ok = client.post("/price", json={"layout": KURD_9, "size_category": "53"}).json()
    assert ok["rounded_total"] == 1035 and ok["feasibility_status"] == "ok"

    warn = client.post("/price", json={"layout": KURD_9, "size_category": "53", "feasibility_status": "warning"}).json()
    assert warn["raw_total"] == 1086.75 and warn["rounded_total"] == 1085

    assert client.post("/price", json={"layout": KURD_9, "size_category": "53", "feasibility_status": "meh"}).status_code == 422


def test_configure_endpoint() -> None:
    invalid = client.post("/configure", json={"layout": "D3", "size_category": "53"})
    assert invalid.status_code == 200
    assert invalid.json()["valid"] is False

    r = client.post(
        "/configure",
        json={"scale_pattern_id": "kurd", "root_note": "E3", "note_count": 9, "size_category": "53", "material": "nitrure"},
    )
    assert r.status_code == 200
    body = r.json()
    assert body["orderable"] is True
    assert body["canonical_layout"] == "E3/B3-C4-D4-E4-F#4-G4-A4-B4"
    assert body["price"]["rounded_total"] == 1035

    assert client.post("/configure", json={"scale_pattern_id": "kurd", "size_category": "53"}).status_code == 400
    unknown = client.post(
        "/configure",
        json={"scale_pattern_id": "nope", "root_note": "D3", "note_count": 9, "size_category": "53", "material": "inox"},
    )
    assert unknown.status_code == 404


def main() -> None:
    test_health_and_catalogues()
    test_layout_endpoints()
    test_feasibility_endpoints()
    test_price_endpoint()
    test_configure_endpoint()
    print("[OK] api server: catalogues, layout, feasibility, price, configure")


if __name__ == "__main__":
    main()
