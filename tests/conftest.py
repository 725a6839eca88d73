"""Shared fixtures for database backed tests."""

import sqlite3
import tempfile
from collections.abc import Generator
from pathlib import Path

import pytest


def create_company_database(path: Path, employees: list[tuple[str, str, str]]) -> None:
    """Create a department and employee database at the given path."""
    conn = sqlite3.connect(path)
    conn.execute(
        """
        CREATE TABLE Department (
            Oid TEXT PRIMARY KEY,
            Name TEXT NOT NULL
        )
    """,
    )
    conn.execute(
        """
        CREATE TABLE Employee (
            Oid TEXT PRIMARY KEY,
            Name TEXT,
            DepartmentId TEXT REFERENCES Department (Oid)
        )
    """,
    )
    conn.executemany(
        "INSERT INTO Department VALUES (?, ?)",
        [("d1", "Sales"), ("d2", "Kế toán")],
    )
    conn.executemany("INSERT INTO Employee VALUES (?, ?, ?)", employees)
    conn.commit()
    conn.close()


@pytest.fixture(name="database_dir")
def temporary_database_dir() -> Generator[Path]:
    """Directory holding the test databases."""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield Path(temp_dir)


@pytest.fixture(name="left_database")
def left_company_database(database_dir: Path) -> Path:
    """Company database with three employees."""
    path = database_dir / "left.db"
    create_company_database(
        path,
        [("e1", "An", "d1"), ("e2", "Binh", "d2"), ("e3", "Chi", "d1")],
    )
    return path


@pytest.fixture(name="right_database")
def right_company_database(database_dir: Path) -> Path:
    """Company database where one employee moved and one left."""
    path = database_dir / "right.db"
    create_company_database(path, [("e1", "An", "d1"), ("e2", "Binh", "d1")])
    return path
