import pytest

from florify.services.catalog_csv import (
    EMPTY_FILE,
    MISSING_REQUIRED,
    NOT_UTF8,
    TOO_MANY_CELLS,
    CatalogCsvError,
    CatalogCsvParser,
    parse_date,
    parse_decimal,
)

from tests.fakes import csv_text


def _parse(content):
    parser = CatalogCsvParser(content)
    rows = list(parser.rows())
    return parser, rows


def test_header_is_case_normalized_and_values_coerced():
    parser, rows = _parse(csv_text(
        "CODBARRA;Descricao;PRECO_UNITARIO;Peso;DATA_CADASTRO;ItemCode;cor",
        " 789 ;Rosa Vermelha;2,50;1,5;05/01/2024;R-01;",
    ))
    assert parser.errors == []
    assert len(rows) == 1
    rec = rows[0].record
    assert rows[0].line == 2
    assert rec.codbarra == "789"
    assert rec.descricao == "Rosa Vermelha"
    assert rec.preco_unitario == 2.50
    assert rec.peso == 1.5
    assert rec.data_cadastro == "2024-01-05"
    assert rec.item_code == "R-01"
    assert rec.cor is None


def test_bytes_with_bom_are_accepted():
    content = "\ufeffcodbarra;descricao\n789;Rosa\n".encode("utf-8")
    parser, rows = _parse(content)
    assert [r.record.codbarra for r in rows] == ["789"]


@pytest.mark.parametrize("raw,expected", [
    ("2,50", 2.5),
    ("1.234,56", 1234.56),
    ("3.5", 3.5),
    ("10", 10.0),
    ("", None),
    ("abc", None),
    (None, None),
])
def test_parse_decimal(raw, expected):
    assert parse_decimal(raw) == expected


@pytest.mark.parametrize("raw,expected", [
    ("05/01/2024", "2024-01-05"),
    ("5/1/2024", "2024-01-05"),
    ("2024-01-05", "2024-01-05"),
    ("31/02/2024", None),
    ("ontem", None),
    ("", None),
])
def test_parse_date(raw, expected):
    assert parse_date(raw) == expected


def test_unparsable_price_defaults_to_zero_and_peso_to_absent():
    _, rows = _parse(csv_text(
        "codbarra;descricao;preco_unitario;peso",
        "789;Rosa;R$ dois;pesado",
    ))
    assert rows[0].record.preco_unitario == 0.0
    assert rows[0].record.peso is None


def test_missing_required_fields_are_row_errors_with_line_numbers():
    parser, rows = _parse(csv_text(
        "codbarra;descricao",
        ";Rosa sem código",
        "790;",
        "   ;Só espaços",
        "791;Lírio",
    ))
    assert [r.record.codbarra for r in rows] == ["791"]
    assert [(e.line, e.reason) for e in parser.errors] == [
        (2, MISSING_REQUIRED),
        (3, MISSING_REQUIRED),
        (4, MISSING_REQUIRED),
    ]
    assert parser.total_rows == 4


def test_missing_barcode_column_rejects_every_row():
    parser, rows = _parse(csv_text("descricao", "Rosa"))
    assert rows == []
    assert parser.errors[0].line == 2


def test_surplus_cells_are_parse_errors_but_trailing_separator_is_tolerated():
    parser, rows = _parse(csv_text(
        "codbarra;descricao",
        "789;Rosa;",
        "790;Lírio;extra",
    ))
    assert [r.record.codbarra for r in rows] == ["789"]
    assert [(e.line, e.reason) for e in parser.errors] == [(3, TOO_MANY_CELLS)]


@pytest.mark.parametrize("content", ["", "   \n", b""])
def test_empty_file_is_fatal(content):
    with pytest.raises(CatalogCsvError, match=EMPTY_FILE):
        CatalogCsvParser(content)


def test_header_without_rows_is_fatal():
    parser = CatalogCsvParser("codbarra;descricao\n")
    with pytest.raises(CatalogCsvError):
        list(parser.rows())


def test_rows_is_single_pass():
    parser = CatalogCsvParser(csv_text("codbarra;descricao", "789;Rosa"))
    list(parser.rows())
    with pytest.raises(RuntimeError):
        list(parser.rows())


def test_batches_chunk_rows():
    lines = ["codbarra;descricao"] + [f"{i};Flor {i}" for i in range(5)]
    parser = CatalogCsvParser(csv_text(*lines))
    sizes = [len(b) for b in parser.batches(size=2)]
    assert sizes == [2, 2, 1]


def test_unterminated_quote_is_a_parse_error_not_a_merged_row():
    parser, rows = _parse(csv_text(
        "codbarra;descricao",
        '100;"Girassol',
        "101;Margarida",
        "102;Tulipa",
        "103;Lírio",
    ))
    assert rows == []
    assert len(parser.errors) == 1
    assert parser.errors[0].line == 2
    assert parser.errors[0].reason.startswith("Erro ao analisar arquivo CSV")


def test_quoted_fields_with_delimiters_still_parse():
    _, rows = _parse(csv_text(
        "codbarra;descricao",
        '100;"Girassol; vaso 12cm"',
        "101;Margarida",
    ))
    assert [(r.line, r.record.descricao) for r in rows] == [(2, "Girassol; vaso 12cm"), (3, "Margarida")]


def test_non_utf8_bytes_are_fatal():
    with pytest.raises(CatalogCsvError, match=NOT_UTF8):
        CatalogCsvParser("codbarra;descricao\n789;Lírio\n".encode("latin-1"))
