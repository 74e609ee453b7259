"""
Bridge from TSV records to pandas DataFrames.

**Conceptual**: Records read from a TSV are plain objects. For inspection,
sorting and export (e.g. to CSV) it is convenient to have them as a
DataFrame whose columns are exactly the record type's TSV columns, in the
same order as the file.
"""

from typing import Any, Iterable

import pandas as pd

from src.data.schemas import derive_columns, header_names


def records_to_frame(records: Iterable[Any], record_type: type) -> pd.DataFrame:
    """
    Build a DataFrame with one row per record and one column per TSV column.

    Values are the records' raw field values, not their TSV text.

    Args:
        records: Records of ``record_type`` (any iterable, e.g. a deserialize() generator).
        record_type: Record class whose schema defines the columns.

    Returns:
        DataFrame with columns in schema order (empty with those columns if
        there are no records).

    Example:
        >>> serializer = TsvSerializer(Tweet, "data/tweets.tsv")
        >>> df = records_to_frame(serializer.deserialize(), Tweet)
        >>> df.columns.tolist()
        ['id', 'time', 'user', 'text']
    """
    columns = derive_columns(record_type)
    rows = [[column.get(record) for column in columns] for record in records]
    return pd.DataFrame(rows, columns=header_names(columns))
