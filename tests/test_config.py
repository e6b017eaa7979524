"""Tests for settings helpers."""

from app.core.config import Settings


def test_odbc_connection_string():
    settings = Settings(
        MSSQL_SERVER="db.internal",
        MSSQL_PORT=14330,
        MSSQL_USER="designer",
        MSSQL_PASSWORD="s3cret",
        MSSQL_ENCRYPT=False,
    )

    parts = settings.get_odbc_connection_string().split(";")

    assert "DRIVER={ODBC Driver 18 for SQL Server}" in parts
    assert "SERVER=db.internal,14330" in parts
    assert "UID=designer" in parts
    assert "PWD={s3cret}" in parts
    assert "Encrypt=no" in parts
    assert "TrustServerCertificate=yes" in parts


def test_password_with_separators_is_braced():
    settings = Settings(MSSQL_PASSWORD="pa;ss}word", MSSQL_ENCRYPT=True)

    connection_string = settings.get_odbc_connection_string()

    assert "PWD={pa;ss}}word};" in connection_string
    assert connection_string.endswith("Encrypt=yes;TrustServerCertificate=yes")


def test_safe_connection_info_masks_password():
    info = Settings(MSSQL_PASSWORD="s3cret").get_safe_connection_info()

    assert info["password"] == "***"
    assert "s3cret" not in str(info)
