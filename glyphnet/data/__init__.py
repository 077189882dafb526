"""Glyph record readers and the training dataset."""

from .csv_source import RecordReader, read_labeled_csv, read_pixel_rows
from .dataset import AUGMENT_ANGLE_RANGES, GlyphDataset

__all__ = [
    "AUGMENT_ANGLE_RANGES",
    "GlyphDataset",
    "RecordReader",
    "read_labeled_csv",
    "read_pixel_rows",
]
