import json
from pathlib import Path

import pytest

from case_reconciliation.cli import main as cli_main


@pytest.fixture(autouse=True)
def _no_primary_store(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the CLI on the secondary export so nothing reaches the network."""

    for key in ("PRIMARY_STORE_URL", "PRIMARY_STORE_API_KEY", "SECONDARY_CACHE_TTL"):
        monkeypatch.delenv(key, raising=False)


@pytest.fixture
def documents_file(tmp_path: Path) -> Path:
    path = tmp_path / "documents.json"
    path.write_text(
        json.dumps(
            [
                {"id": "s1", "plate": "AA-123-BB", "customerName": "Nino", "status": "Completed", "totalPrice": 80},
                {"id": "s2", "plate": "TB-456-XY", "customerName": "Levan", "status": "In Service", "totalPrice": 20},
            ]
        ),
        encoding="utf-8",
    )
    return path


def _rows(output: str) -> list:
    return [json.loads(line) for line in output.splitlines() if line.strip()]


def test_cli_prints_matching_records(documents_file: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert cli_main(["nino", "--documents", str(documents_file)]) == 0

    rows = _rows(capsys.readouterr().out)
    assert [row["id"] for row in rows] == ["s1"]
    assert rows[0]["matched_fields"] == ["customer_name"]
    assert rows[0]["relevance_score"] == 30


def test_cli_plate_and_ocr_lookups(documents_file: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert cli_main(["--plate", "tb456xy", "--documents", str(documents_file)]) == 0
    assert [row["id"] for row in _rows(capsys.readouterr().out)] == ["s2"]

    assert cli_main(["--ocr", "*AA 123 BB*", "--documents", str(documents_file)]) == 0
    rows = _rows(capsys.readouterr().out)
    assert rows[0]["id"] == "s1"
    assert rows[0]["similarity"] == 100


def test_cli_prints_statistics(documents_file: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert cli_main(["--stats", "--documents", str(documents_file)]) == 0

    stats = json.loads(capsys.readouterr().out)
    assert stats["count"] == 2
    assert stats["total_price"] == 100.0
    assert stats["by_category"] == {"completed": 1, "in-service": 1, "pending": 0}


def test_cli_reports_unavailable_stores(tmp_path: Path) -> None:
    broken = tmp_path / "broken.json"
    broken.write_text("{\"not\": \"a list\"}", encoding="utf-8")

    assert cli_main(["nino", "--documents", str(broken)]) == 1


def test_cli_requires_a_query(capsys: pytest.CaptureFixture[str]) -> None:
    assert cli_main([]) == 2
    assert "usage" in capsys.readouterr().out
