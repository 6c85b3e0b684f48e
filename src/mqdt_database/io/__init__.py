"""表的组装、落盘与基组文件读写。"""

from .tables import Table, assemble_tables, basis_to_table, renumber, triples_to_table
from .database import DatabaseWriter, database_directory
from .basis_file import dump_basis, load_basis

__all__ = [
    "Table",
    "assemble_tables",
    "basis_to_table",
    "renumber",
    "triples_to_table",
    "DatabaseWriter",
    "database_directory",
    "dump_basis",
    "load_basis",
]
