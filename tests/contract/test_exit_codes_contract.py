from __future__ import annotations

from pathlib import Path

from excel_mapper.cli.__main__ import main as cli_main

"""Exit code contract: 0 imported / dry-run ok, 2 blocked, 1 fatal."""


def test_exit_code_fatal_startup(temp_workdir: Path, capsys):
    # config/mapper.yml missing -> exit 1
    code = cli_main([str(temp_workdir / "data" / "any.xlsx")])
    captured = capsys.readouterr()
    assert code == 1
    assert "ERROR config:" in captured.out


def test_exit_code_blocked_on_errors(write_config, make_xlsx, capsys):
    excel = make_xlsx({"S": [["Ürün Adı", "Ürün Kodu", "Fiyat"], ["", "P", 5]]})
    code = cli_main([str(excel)])
    out = capsys.readouterr().out
    assert code == 2
    assert "Satır 2: Ürün Adı boş olamaz" in out


def test_exit_code_success(write_config, make_xlsx, capsys):
    excel = make_xlsx({"S": [["Ürün Adı", "Ürün Kodu", "Fiyat"], ["Panel", "P", 5]]})
    assert cli_main([str(excel)]) == 0
