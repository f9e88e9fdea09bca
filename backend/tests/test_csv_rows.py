import pytest

from domain.errors import ValidationError
from services.csv_rows import read_csv_rows


def test_reads_rows_with_bom_and_strips_cells():
    data = "\ufeffTitle,Note,URL\n Tian Tian , ,https://maps.google.com/?q=Maxwell\n".encode("utf-8")
    rows = read_csv_rows(data)
    assert rows == [{"Title": "Tian Tian", "Note": "", "URL": "https://maps.google.com/?q=Maxwell"}]


def test_skips_blank_rows():
    rows = read_csv_rows("name,address\nA,1 Road\n,\n\nB,2 Road\n")
    assert [r["name"] for r in rows] == ["A", "B"]


def test_quoted_commas_stay_in_one_cell():
    rows = read_csv_rows('name,address\nA,"1 Road, #01-02, Singapore"\n')
    assert rows[0]["address"] == "1 Road, #01-02, Singapore"


def test_short_rows_get_empty_values():
    rows = read_csv_rows("name,address,url\nA,1 Road\n")
    assert rows == [{"name": "A", "address": "1 Road", "url": ""}]


def test_missing_header_is_rejected():
    with pytest.raises(ValidationError):
        read_csv_rows("")
