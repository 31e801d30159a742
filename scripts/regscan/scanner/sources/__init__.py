"""
Scan sources: built-in and configured feeds and pages.

Each source is wrapped in a SourceAdapter that outputs a standard
SourceFetch with RawItem entries and a health record.
"""
