import json
from pathlib import Path

import pytest

from pantry.tracker_service.app.models import InboundRequest, InventoryItemPatch
from pantry.tracker_service.app.repository import PantryRepository
from pantry.tracker_service.app.store import FileStateStore
from scripts.maintenance.export_pantry_state import main


def _seed(path: Path) -> None:
    repository = PantryRepository(FileStateStore(path))
    item = repository.upsert_inventory_item(InventoryItemPatch(name="Rice", quantity=1))
    repository.record_inbound(InboundRequest(item_id=item.id, quantity=9, source="Donation"))


def test_export_json_to_file(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    state_path = tmp_path / "state.json"
    output = tmp_path / "exports" / "backup.json"
    _seed(state_path)

    with pytest.raises(SystemExit) as excinfo:
        main(["--state-path", str(state_path), "--output", str(output)])

    assert excinfo.value.code == 0
    report = json.loads(capsys.readouterr().out)
    assert report["inventory"] == 1
    assert report["transactions"] == 1
    assert json.loads(output.read_text())["inventory"][0]["quantity"] == 10


def test_export_csv_to_stdout(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    state_path = tmp_path / "state.json"
    _seed(state_path)

    with pytest.raises(SystemExit) as excinfo:
        main(["--state-path", str(state_path), "--format", "csv", "--database-url", ""])

    assert excinfo.value.code == 0
    captured = capsys.readouterr()
    assert captured.out.splitlines()[1].startswith("IN,")
    assert json.loads(captured.err.strip().splitlines()[-1])["format"] == "csv"
