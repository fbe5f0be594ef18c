from censusmaps.dataset import list_datasets, list_variables, list_geographies, fetch_data
from censusmaps.normalize import normalize, normalize_many, compare_snapshots, YearlySnapshot, SchemaMismatch, EmptyInput
from censusmaps.boundaries import BoundaryProvider, join_with_boundaries, shift_geometry
from censusmaps.plot import render, compose
