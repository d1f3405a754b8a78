from __future__ import annotations

import csv
from pathlib import Path
from typing import List
from unittest import mock

import pytest

from mailbox_batches.models import AddressRecord
from mailbox_batches.records import read_address_csv, write_address_csv
from mailbox_batches.splitter import batch_count, index_width, split_master_file


def make_master(path: Path, n: int) -> List[str]:
    addresses = [f"user{i:04d}@example.com" for i in range(n)]
    write_address_csv(path, [AddressRecord(a) for a in addresses])
    return addresses


def read_rows(path: Path) -> List[str]:
    return [r.email_address for r in read_address_csv(path)]


@pytest.mark.parametrize(
    "total,size,expected",
    [(0, 25, 1), (5, 25, 1), (24, 25, 1), (25, 25, 1), (26, 25, 2), (60, 25, 3), (250, 25, 10), (7, 1, 7)],
)
def test_batch_count(total: int, size: int, expected: int) -> None:
    assert batch_count(total, size) == expected


@pytest.mark.parametrize("count,width", [(1, 1), (7, 1), (9, 1), (10, 2), (99, 2), (100, 3)])
def test_index_width(count: int, width: int) -> None:
    assert index_width(count) == width


class TestSplitMasterFile:
    def test_sixty_rows_in_batches_of_25(self, tmp_path: Path) -> None:
        master = tmp_path / "UserMailboxes.csv"
        addresses = make_master(master, 60)

        written = split_master_file(master, "User_Batch", 25, base_dir=tmp_path)

        assert [p.name for p in written] == ["User_Batch1.csv", "User_Batch2.csv", "User_Batch3.csv"]
        assert [len(read_rows(p)) for p in written] == [25, 25, 10]
        combined = [a for p in written for a in read_rows(p)]
        assert combined == addresses

    def test_fewer_rows_than_batch_size_gives_single_batch(self, tmp_path: Path) -> None:
        master = tmp_path / "RoomMailboxes.csv"
        addresses = make_master(master, 5)

        written = split_master_file(master, "Room_Batch", 25, base_dir=tmp_path)

        assert [p.name for p in written] == ["Room_Batch1.csv"]
        assert read_rows(written[0]) == addresses

    def test_ten_batches_use_two_digit_index(self, tmp_path: Path) -> None:
        master = tmp_path / "m.csv"
        make_master(master, 10)

        written = split_master_file(master, "P", 1, base_dir=tmp_path)

        assert [p.name for p in written] == [f"P{i:02d}.csv" for i in range(1, 11)]

    def test_hundred_batches_use_three_digit_index(self, tmp_path: Path) -> None:
        master = tmp_path / "m.csv"
        addresses = make_master(master, 100)

        written = split_master_file(master, "P", 1, base_dir=tmp_path)

        assert written[0].name == "P001.csv"
        assert written[-1].name == "P100.csv"
        assert [a for p in written for a in read_rows(p)] == addresses

    def test_header_repeated_in_every_batch(self, tmp_path: Path) -> None:
        master = tmp_path / "m.csv"
        make_master(master, 7)

        for path in split_master_file(master, "B", 3, base_dir=tmp_path):
            with path.open(encoding="utf-8", newline="") as f:
                assert next(csv.reader(f)) == ["EmailAddress"]

    def test_missing_master_is_noop(self, tmp_path: Path) -> None:
        written = split_master_file(tmp_path / "absent.csv", "X_Batch", 25, base_dir=tmp_path)

        assert written == []
        assert list(tmp_path.iterdir()) == []

    def test_header_only_master_gives_one_empty_batch(self, tmp_path: Path) -> None:
        master = tmp_path / "m.csv"
        make_master(master, 0)

        written = split_master_file(master, "E_Batch", 25, base_dir=tmp_path)

        assert [p.name for p in written] == ["E_Batch1.csv"]
        assert written[0].read_text(encoding="utf-8").strip() == "EmailAddress"

    def test_rerun_is_byte_identical(self, tmp_path: Path) -> None:
        master = tmp_path / "m.csv"
        make_master(master, 53)

        first = split_master_file(master, "S_Batch", 25, base_dir=tmp_path)
        before = [p.read_bytes() for p in first]
        second = split_master_file(master, "S_Batch", 25, base_dir=tmp_path)

        assert first == second
        assert [p.read_bytes() for p in second] == before

    def test_existing_batch_is_overwritten_not_appended(self, tmp_path: Path) -> None:
        master = tmp_path / "m.csv"
        addresses = make_master(master, 3)
        stale = tmp_path / "S_Batch1.csv"
        stale.write_text("EmailAddress\nold@example.com\n", encoding="utf-8")

        split_master_file(master, "S_Batch", 25, base_dir=tmp_path)

        assert read_rows(stale) == addresses

    def test_batches_folder_is_created(self, tmp_path: Path) -> None:
        master = tmp_path / "m.csv"
        make_master(master, 30)

        written = split_master_file(master, "U_Batch", 25, use_batches_folder=True, base_dir=tmp_path)

        assert all(p.parent == tmp_path / "Batches" for p in written)
        assert len(written) == 2

    def test_defaults_to_working_directory(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        master = tmp_path / "m.csv"
        make_master(master, 2)
        work = tmp_path / "work"
        work.mkdir()
        monkeypatch.chdir(work)

        written = split_master_file(master, "W_Batch")

        assert [p.resolve() for p in written] == [(work / "W_Batch1.csv").resolve()]

    @pytest.mark.parametrize("size", [0, -1, True])
    def test_rejects_non_positive_batch_size(self, tmp_path: Path, size) -> None:
        master = tmp_path / "m.csv"
        make_master(master, 2)
        with pytest.raises(ValueError, match="positive integer"):
            split_master_file(master, "B", size, base_dir=tmp_path)

    def test_reads_master_with_bom(self, tmp_path: Path) -> None:
        master = tmp_path / "m.csv"
        master.write_bytes("EmailAddress\r\na@example.com\r\nb@example.com\r\n".encode("utf-8-sig"))

        written = split_master_file(master, "B", 25, base_dir=tmp_path)

        assert read_rows(written[0]) == ["a@example.com", "b@example.com"]


class TestStaleBatches:
    def test_rerun_with_fewer_batches_removes_old_files(self, tmp_path: Path) -> None:
        master = tmp_path / "UserMailboxes.csv"
        make_master(master, 12)
        first = split_master_file(master, "User_Batch", 1, base_dir=tmp_path)
        assert first[0].name == "User_Batch01.csv"

        addresses = make_master(master, 3)
        second = split_master_file(master, "User_Batch", 1, base_dir=tmp_path)

        on_disk = sorted(p.name for p in tmp_path.glob("User_Batch*.csv"))
        assert on_disk == ["User_Batch1.csv", "User_Batch2.csv", "User_Batch3.csv"]
        assert [a for p in second for a in read_rows(p)] == addresses

    def test_stale_removal_is_logged_as_warning(self, tmp_path: Path) -> None:
        master = tmp_path / "m.csv"
        make_master(master, 2)
        (tmp_path / "S_Batch07.csv").write_text("EmailAddress\nold@example.com\n", encoding="utf-8")

        with mock.patch("mailbox_batches.utils.logging") as mock_log:
            split_master_file(master, "S_Batch", 25, base_dir=tmp_path)

        assert "S_Batch07.csv" in str(mock_log.warning.call_args_list)
        assert not (tmp_path / "S_Batch07.csv").exists()

    def test_other_prefixes_and_files_are_kept(self, tmp_path: Path) -> None:
        master = tmp_path / "UserMailboxes.csv"
        make_master(master, 2)
        keep = [
            tmp_path / "User_DB01_Batch1.csv",
            tmp_path / "Shared_Batch1.csv",
            tmp_path / "User_Batch_notes.csv",
            tmp_path / "User_Batch1.txt",
        ]
        for path in keep:
            path.write_text("EmailAddress\nkeep@example.com\n", encoding="utf-8")

        split_master_file(master, "User_Batch", 25, base_dir=tmp_path)

        assert all(p.exists() for p in keep)
        assert master.exists()


@pytest.mark.parametrize("size", [1, 7, 25])
@pytest.mark.parametrize("total", range(0, 61))
def test_split_reproduces_master_in_order(tmp_path: Path, total: int, size: int) -> None:
    master = tmp_path / "m.csv"
    addresses = make_master(master, total)

    written = split_master_file(master, "B", size, base_dir=tmp_path)

    expected = 1 if total < size else -(-total // size)
    assert len(written) == expected
    assert all(p.name == f"B{k:0{len(str(expected))}d}.csv" for k, p in enumerate(written, start=1))
    assert all(len(read_rows(p)) <= size for p in written)
    assert [a for p in written for a in read_rows(p)] == addresses
