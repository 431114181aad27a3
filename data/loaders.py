"""
Data Loaders

This module provides loaders reading tabular files into MemoryTable
snapshots. All loaders implement the DataLoader interface.
"""

from abc import ABC, abstractmethod
from typing import Optional, Dict, Any, List
from pathlib import Path
import pandas as pd
import warnings

from .table import MemoryTable


class DataLoader(ABC):
    """
    Abstract base class for data loaders.

    All data loaders must implement the load() method to read
    a file and return a MemoryTable object.
    """

    @abstractmethod
    def load(self, filepath: str) -> MemoryTable:
        """
        Load a table from file.

        Args:
            filepath: Path to the file

        Returns:
            MemoryTable object

        Raises:
            FileNotFoundError: If file doesn't exist
            ValueError: If file format is invalid
        """
        pass

    def load_batch(self, directory: str, pattern: str) -> List[MemoryTable]:
        """
        Load every matching file of a directory.

        Args:
            directory: Directory containing tables
            pattern: Glob pattern for file matching (e.g., "*.csv")

        Returns:
            List of MemoryTable objects (files that fail to load are skipped with a warning)
        """
        directory = Path(directory)
        if not directory.exists():
            raise FileNotFoundError(f"Directory not found: {directory}")

        tables = []
        for filepath in sorted(directory.glob(pattern)):
            try:
                tables.append(self.load(str(filepath)))
            except (ValueError, pd.errors.ParserError) as e:
                warnings.warn(f"Failed to load {filepath.name}: {e}")

        if not tables:
            warnings.warn(f"No tables loaded from {directory} matching '{pattern}'")

        return tables

    @staticmethod
    def _table_name(filepath: Path) -> str:
        """Table name derived from the file name ("Sales 2024.csv" -> "sales_2024")."""
        return filepath.stem.strip().lower().replace(' ', '_').replace('-', '_')


class CSVDataLoader(DataLoader):
    """
    Loader for delimited text files with a header row.

    Attributes:
        delimiter (str): Field separator
        encoding (str): Text encoding
        parse_dates (List[str]): Columns parsed as datetimes
    """

    def __init__(
        self,
        delimiter: str = ',',
        encoding: str = 'utf-8',
        parse_dates: Optional[List[str]] = None,
        read_options: Optional[Dict[str, Any]] = None
    ):
        """
        Initialize CSV loader.

        Args:
            delimiter: Field separator
            encoding: Text encoding
            parse_dates: Columns to parse as datetimes
            read_options: Extra keyword arguments for pandas.read_csv
        """
        self.delimiter = delimiter
        self.encoding = encoding
        self.parse_dates = parse_dates or []
        self.read_options = read_options or {}

    def load(self, filepath: str) -> MemoryTable:
        """Load table from CSV file."""
        filepath = Path(filepath)

        if not filepath.exists():
            raise FileNotFoundError(f"File not found: {filepath}")

        try:
            df = pd.read_csv(
                filepath,
                sep=self.delimiter,
                encoding=self.encoding,
                parse_dates=self.parse_dates or False,
                **self.read_options
            )
        except UnicodeDecodeError:
            warnings.warn(f"{filepath.name} is not valid {self.encoding}, retrying as latin-1")
            df = pd.read_csv(
                filepath,
                sep=self.delimiter,
                encoding='latin-1',
                parse_dates=self.parse_dates or False,
                **self.read_options
            )

        if df.shape[1] == 0:
            raise ValueError(f"CSV file has no columns: {filepath.name}")

        df.columns = [str(c).strip() for c in df.columns]
        return MemoryTable(df, name=self._table_name(filepath))

    def load_batch(self, directory: str, pattern: str = "*.csv") -> List[MemoryTable]:
        return super().load_batch(directory, pattern)


class ExcelDataLoader(DataLoader):
    """
    Loader for Excel workbooks (read with openpyxl).

    Attributes:
        sheet_name: Sheet to read (name or index)
    """

    def __init__(self, sheet_name: Any = 0):
        self.sheet_name = sheet_name

    def load(self, filepath: str) -> MemoryTable:
        """Load table from one sheet of an Excel file."""
        filepath = Path(filepath)

        if not filepath.exists():
            raise FileNotFoundError(f"File not found: {filepath}")

        df = pd.read_excel(filepath, sheet_name=self.sheet_name, engine='openpyxl')
        if df.shape[1] == 0:
            raise ValueError(f"Sheet has no columns: {filepath.name}")

        df.columns = [str(c).strip() for c in df.columns]
        return MemoryTable(df, name=self._table_name(filepath))

    def load_batch(self, directory: str, pattern: str = "*.xlsx") -> List[MemoryTable]:
        return super().load_batch(directory, pattern)


def load_table(filepath: str, **kwargs) -> MemoryTable:
    """
    Load a table, choosing the loader from the file extension.

    Args:
        filepath: .csv, .tsv, .txt or .xlsx file
        **kwargs: Passed to the loader constructor

    Returns:
        MemoryTable
    """
    suffix = Path(filepath).suffix.lower()
    if suffix in ('.xlsx', '.xlsm'):
        return ExcelDataLoader(**kwargs).load(filepath)
    if suffix == '.tsv':
        kwargs.setdefault('delimiter', '\t')
    elif suffix not in ('.csv', '.txt'):
        raise ValueError(f"Unsupported file type '{suffix}' for {filepath}")
    return CSVDataLoader(**kwargs).load(filepath)
