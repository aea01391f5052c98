from __future__ import annotations

import json
from pathlib import Path

from mc_excavator.mining import JsonProgressStore, PersistedProgress, target_at
from mc_excavator.models import Region, Vec3

REGION = Region(Vec3(0, 0, 0), Vec3(1, 0, 1)).normalized()


def test_save_writes_the_documented_schema(tmp_path: Path) -> None:
    store = JsonProgressStore(tmp_path / "mining_state.json")

    store.save(REGION, 2)

    payload = json.loads((tmp_path / "mining_state.json").read_text(encoding="utf-8"))
    assert payload == {
        "area": {"min": {"x": 0, "y": 0, "z": 0}, "max": {"x": 1, "y": 0, "z": 1}},
        "minedBlocks": 2,
    }
    assert not (tmp_path / "mining_state.json.tmp").exists()


def test_persisted_progress_resumes_at_the_saved_index(tmp_path: Path) -> None:
    path = tmp_path / "state.json"
    path.write_text(
        '{"area": {"min": {"x": 0, "y": 0, "z": 0}, "max": {"x": 1, "y": 0, "z": 1}}, "minedBlocks": 2}',
        encoding="utf-8",
    )

    saved = JsonProgressStore(path).load()

    assert saved is not None
    assert saved.mined_blocks == 2
    assert target_at(saved.to_region(), saved.mined_blocks) == Vec3(1, 0, 1)


def test_missing_or_corrupt_file_means_nothing_to_resume(tmp_path: Path) -> None:
    path = tmp_path / "state.json"
    store = JsonProgressStore(path)
    assert store.load() is None
    assert not store.has_state()

    path.write_text("{not json", encoding="utf-8")
    assert store.load() is None

    path.write_text('{"area": {"min": {"x": 0}}, "minedBlocks": -1}', encoding="utf-8")
    assert store.load() is None

    path.write_bytes(b'{"area": \xff\xfe}')
    assert store.load() is None


def test_clear_removes_the_file_and_is_idempotent(tmp_path: Path) -> None:
    store = JsonProgressStore(tmp_path / "nested" / "state.json")
    store.save(REGION, 1)
    assert store.has_state()

    store.clear()
    store.clear()

    assert not store.has_state()


def test_model_accepts_field_names_and_aliases() -> None:
    by_alias = PersistedProgress.model_validate(
        {"area": {"min": {"x": 0, "y": 0, "z": 0}, "max": {"x": 1, "y": 0, "z": 1}}, "minedBlocks": 3}
    )
    by_name = PersistedProgress.from_region(REGION, 3)

    assert by_alias == by_name
    assert json.loads(by_name.to_json())["minedBlocks"] == 3
