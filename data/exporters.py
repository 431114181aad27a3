"""
Result Exporters

Write analysis results to disk. Every result type flattens itself with
``to_frame()``; a batch of named results becomes either one workbook with a
sheet per result or a directory holding one CSV file per result.
"""

from typing import Dict, Optional, Any
import re
import pandas as pd
from pathlib import Path
import warnings

# Excel rejects sheet names longer than this or containing []:*?/\
MAX_SHEET_NAME = 31
_SHEET_NAME_FORBIDDEN = re.compile(r'[\[\]:*?/\\]')


def safe_sheet_name(name: str, taken: Optional[set] = None) -> str:
    """
    Make ``name`` acceptable to Excel and unique among ``taken``.

    Forbidden characters become underscores, the name is cut to the Excel
    limit, and a numeric suffix is appended when the cut name collides.
    """
    cleaned = _SHEET_NAME_FORBIDDEN.sub('_', str(name)).strip("'") or 'Sheet'
    if len(cleaned) > MAX_SHEET_NAME:
        warnings.warn(
            f"Sheet name '{cleaned}' truncated to '{cleaned[:MAX_SHEET_NAME]}' "
            f"(Excel limit: {MAX_SHEET_NAME} characters)"
        )
        cleaned = cleaned[:MAX_SHEET_NAME]

    taken = taken or set()
    candidate = cleaned
    suffix = 2
    while candidate in taken:
        tail = f"_{suffix}"
        candidate = cleaned[:MAX_SHEET_NAME - len(tail)] + tail
        suffix += 1
    return candidate


def _fit_column_widths(worksheet, limit: int = 50) -> None:
    for column in worksheet.columns:
        widest = max((len(str(cell.value)) for cell in column if cell.value is not None), default=0)
        worksheet.column_dimensions[column[0].column_letter].width = min(widest + 2, limit)


class ExcelExporter:
    """
    Collect frames and write them as the sheets of one workbook.

    Attributes:
        filepath (Path): Output .xlsx path
        sheets (Dict[str, pd.DataFrame]): Sheet name -> frame, in insertion order
    """

    def __init__(self, filepath: str):
        self.filepath = Path(filepath)
        self.sheets: Dict[str, pd.DataFrame] = {}

    def add_sheet(self, sheet_name: str, data: pd.DataFrame) -> str:
        """
        Queue a frame for writing.

        Args:
            sheet_name: Requested sheet name
            data: Frame to write (the index is not written)

        Returns:
            The sheet name actually used
        """
        if not isinstance(data, pd.DataFrame):
            raise ValueError(f"Data must be a pandas DataFrame, got {type(data)}")

        name = safe_sheet_name(sheet_name, set(self.sheets))
        self.sheets[name] = data
        return name

    def add_result(self, result: Any, sheet_name: Optional[str] = None) -> str:
        """Queue the flattened form of an analysis result (sheet defaults to its kind)."""
        return self.add_sheet(sheet_name or result.kind, result.to_frame())

    def write(self, freeze_header: bool = True) -> Path:
        """
        Write every queued sheet through openpyxl.

        Args:
            freeze_header: Keep the header row visible while scrolling

        Returns:
            Path of the workbook
        """
        if not self.sheets:
            warnings.warn("No sheets to write")
            return self.filepath

        self.filepath.parent.mkdir(parents=True, exist_ok=True)

        with pd.ExcelWriter(self.filepath, engine='openpyxl') as writer:
            for name, frame in self.sheets.items():
                frame.to_excel(writer, sheet_name=name, index=False)
                worksheet = writer.sheets[name]
                _fit_column_widths(worksheet)
                if freeze_header:
                    worksheet.freeze_panes = 'A2'

        print(f"Workbook written: {self.filepath} ({len(self.sheets)} sheets)")
        return self.filepath


class CSVExporter:
    """One CSV file per result inside an output directory."""

    def __init__(self, output_directory: str):
        self.output_directory = Path(output_directory)
        self.output_directory.mkdir(parents=True, exist_ok=True)

    def export_frame(self, data: pd.DataFrame, filename: str) -> Path:
        """
        Write a frame as ``filename`` inside the output directory.

        Raises:
            ValueError: If the file cannot be written
        """
        filepath = self.output_directory / filename
        try:
            data.to_csv(filepath, index=False)
        except OSError as e:
            raise ValueError(f"Failed to export {filename}: {e}") from e
        return filepath

    def export_result(self, result: Any, filename: Optional[str] = None) -> Path:
        """Write the flattened form of a result (file defaults to '<kind>.csv')."""
        return self.export_frame(result.to_frame(), filename or f"{result.kind}.csv")


class ResultsExporter:
    """
    Export a batch of named results in one go.

    ``excel`` produces a single workbook (the suffix is forced to .xlsx);
    ``csv`` produces a directory. Run metadata, when given, lands in a
    ``Metadata`` sheet or a ``metadata.csv`` file.
    """

    FORMATS = ('excel', 'csv')

    def __init__(self, output_path: str, format: str = 'excel'):
        if format not in self.FORMATS:
            raise ValueError(f"Format must be one of {self.FORMATS}, got '{format}'")

        self.format = format
        self.output_path = Path(output_path)
        if format == 'excel' and self.output_path.suffix != '.xlsx':
            self.output_path = self.output_path.with_suffix('.xlsx')

    def export_results(
        self,
        results: Dict[str, Any],
        metadata: Optional[Dict[str, Any]] = None
    ) -> str:
        """
        Export named analysis results.

        Args:
            results: name -> AnalysisResult
            metadata: Optional run metadata (one row)

        Returns:
            Path to the workbook or directory
        """
        meta_frame = pd.DataFrame([metadata]) if metadata else None

        if self.format == 'excel':
            workbook = ExcelExporter(str(self.output_path))
            for name, result in results.items():
                workbook.add_result(result, sheet_name=name)
            if meta_frame is not None:
                workbook.add_sheet('Metadata', meta_frame)
            workbook.write()
        else:
            directory = CSVExporter(str(self.output_path))
            for name, result in results.items():
                directory.export_result(result, filename=f"{name}.csv")
            if meta_frame is not None:
                directory.export_frame(meta_frame, 'metadata.csv')
            print(f"CSV files written to: {self.output_path}")

        return str(self.output_path)
