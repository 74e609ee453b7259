"""
TSV record codec: schemas, value converters, escaping and file I/O.

Serializes collections of records to tab-separated files with a header line,
one record per line, and reads them back lazily.
"""
