from typing import Dict, List, Mapping, Union, Any
from math import isnan
from numpy import nan
from pandas import DataFrame

from censusmaps.constants import BAD_VALUES


class NormalizationError(Exception):
    pass


class SchemaMismatch(NormalizationError):
    pass


class EmptyInput(NormalizationError):
    pass


CANONICAL_COLUMNS = ['geo_id', 'geography_name', 'percent_value']


class YearlySnapshot(DataFrame):
    """
    A YearlySnapshot is a :class:`pandas.DataFrame` holding one survey vintage of a
    single percentage estimate in a vintage-independent shape. It has three columns:

       + ``geo_id``: the Bureau-assigned geographic identifier, copied verbatim
       + ``geography_name``: the display name of the geography
       + ``percent_value``: the estimate as a float, or ``NaN`` when suppressed

    Rows are sorted by ``geography_name``. The ``vintage`` and ``variable``
    attributes survive slicing, sorting and copying.
    """

    _metadata = ['vintage', 'variable']

    vintage : int = None
    variable : str = None

    @property
    def _constructor(self):
        return YearlySnapshot


def _parse_percent(value: Any) -> float:
    if isinstance(value, str):
        value = value.strip()
    if value is None or value in BAD_VALUES:
        return nan

    try:
        number = float(value)
    except (TypeError, ValueError):
        return nan

    if isnan(number) or number < 0 or number > 100:
        return nan
    return number


def _validate(raw_rows: Union[DataFrame, List[Mapping[str, Any]]], required: List[str]) -> DataFrame:
    if isinstance(raw_rows, DataFrame):
        if len(raw_rows) == 0:
            raise EmptyInput('There are no rows to normalize.')
        missing = [c for c in required if c not in raw_rows.columns]
        if missing:
            raise SchemaMismatch(f'The following required columns are missing: {missing}. Available columns are: {list(raw_rows.columns)}')
        return raw_rows

    raw_rows = list(raw_rows)
    if len(raw_rows) == 0:
        raise EmptyInput('There are no rows to normalize.')
    for i, row in enumerate(raw_rows):
        missing = [c for c in required if c not in row]
        if missing:
            raise SchemaMismatch(f'Row {i} is missing the following required columns: {missing}')
    return DataFrame.from_records(raw_rows)


def normalize(raw_rows: Union[DataFrame, List[Mapping[str, Any]]], percent_column: str, geo_id_column: str = 'GEOID', name_column: str = 'NAME', vintage: int = None) -> YearlySnapshot:
    """
    Converts one vintage's raw survey rows into a :class:`.YearlySnapshot`. The
    Bureau renames percentage variables across vintages, so the column holding the
    estimate is supplied by the caller; the output has the same columns for every
    vintage.

    A value that cannot be parsed as a number, that is a Census annotation value
    (for example ``-666666666``), or that lies outside ``[0, 100]`` becomes ``NaN``
    for that row only.

    Parameters
    ==========
    raw_rows : :class:`pandas.DataFrame` or :obj:`list` of :obj:`dict`
        The raw rows, as returned by :func:`censusmaps.dataset.fetch_data`.
    percent_column : :obj:`str`
        The column holding the percentage estimate, for example ``DP02_0151PE``.
    geo_id_column : :obj:`str` = 'GEOID'
        The column holding the geographic identifier.
    name_column : :obj:`str` = 'NAME'
        The column holding the display name of each geography.
    vintage : :obj:`int` = None
        The survey year, recorded on the snapshot.

    Raises
    ======
    EmptyInput
        If there are no rows.
    SchemaMismatch
        If one of the three columns is missing from any row.
    """
    data = _validate(raw_rows, required=[geo_id_column, name_column, percent_column])

    snapshot = YearlySnapshot({
        'geo_id': data[geo_id_column].to_numpy(),
        'geography_name': data[name_column].to_numpy(),
        'percent_value': data[percent_column].map(_parse_percent).astype(float).to_numpy(),
    }, columns=CANONICAL_COLUMNS)
    snapshot = snapshot.sort_values(by='geography_name', kind='stable').reset_index(drop=True)

    snapshot.vintage = int(vintage) if vintage is not None else None
    snapshot.variable = percent_column
    return snapshot


def normalize_many(raw_tables: Dict[int, Union[DataFrame, List[Mapping[str, Any]]]], percent_columns: Dict[int, str], geo_id_column: str = 'GEOID', name_column: str = 'NAME') -> Dict[int, YearlySnapshot]:
    """
    Normalizes several vintages at once.

    Parameters
    ==========
    raw_tables : :obj:`dict` of :obj:`int`: :class:`pandas.DataFrame`
        Raw rows keyed by vintage.
    percent_columns : :obj:`dict` of :obj:`int`: :obj:`str`
        The percentage column of each vintage, for example
        ``{2013: 'DP02_0151PE', 2023: 'DP02_0153PE'}``.
    """
    missing = [v for v in raw_tables if v not in percent_columns]
    if missing:
        raise ValueError(f'No percentage column was given for the following vintages: {missing}')

    return {
        v: normalize(raw_rows, percent_column=percent_columns[v], geo_id_column=geo_id_column, name_column=name_column, vintage=v)
        for v, raw_rows in raw_tables.items()
    }


def compare_snapshots(earlier: YearlySnapshot, later: YearlySnapshot) -> DataFrame:
    """
    Joins two snapshots on ``geo_id`` and reports how each geography changed. Only
    geographies present in both snapshots are kept. The result has the columns
    ``geo_id``, ``geography_name``, ``percent_value_<earlier vintage>``,
    ``percent_value_<later vintage>`` and ``change``.

    Parameters
    ==========
    earlier : :class:`.YearlySnapshot`
        The snapshot of the earlier vintage.
    later : :class:`.YearlySnapshot`
        The snapshot of the later vintage.
    """
    if earlier.vintage is None or later.vintage is None:
        raise ValueError('Both snapshots need a vintage to be compared.')
    if earlier.vintage == later.vintage:
        raise ValueError(f'Both snapshots are from {earlier.vintage}.')

    earlier_col = f'percent_value_{earlier.vintage}'
    later_col = f'percent_value_{later.vintage}'

    comparison = DataFrame(earlier).rename(columns={'percent_value': earlier_col}).merge(
        DataFrame(later)[['geo_id', 'percent_value']].rename(columns={'percent_value': later_col}),
        on='geo_id',
        how='inner'
    )
    comparison['change'] = comparison[later_col] - comparison[earlier_col]

    return comparison.sort_values(by='geography_name', kind='stable').reset_index(drop=True)
