from typing import Dict, Tuple
from os import path, makedirs, replace
from pandas import DataFrame, Series
from pandas.errors import MergeError
from geopandas import GeoDataFrame, read_file
from shapely import affinity, union_all

from censusmaps.api import BoundaryClient
from censusmaps.constants import BOUNDARY_LEVELS, BOUNDARY_RESOLUTIONS, EARLIEST_BOUNDARY_YEAR
from censusmaps.normalize import YearlySnapshot


class BoundaryError(Exception):
    pass


class BoundaryProvider:
    """
    An object that downloads, caches and reads the Census Bureau's national
    cartographic boundary files for a single year.

    Parameters
    ==========
    year : :obj:`int`
        The boundary year. Usually the same as the survey vintage. Files are
        available from 2013 onwards; earlier years use the 2013 files.
    resolution : :obj:`str` = '500k'
        The generalization of the boundaries: ``500k``, ``5m`` or ``20m``.
    output_dir : :obj:`str` = 'boundaries'
        The directory the zip files are saved in. Files already present are not
        downloaded again.
    **client_kwargs
        Passed on to :class:`.BoundaryClient`.
    """
    def __init__(self, year: int, resolution: str = '500k', output_dir: str = 'boundaries', **client_kwargs) -> None:
        year = int(year)
        if year < EARLIEST_BOUNDARY_YEAR:
            print(f'No cartographic boundary file is available for {year}, so using earliest available ({EARLIEST_BOUNDARY_YEAR})')
            year = EARLIEST_BOUNDARY_YEAR

        if resolution not in BOUNDARY_RESOLUTIONS:
            raise BoundaryError(f"'{resolution}' is not a valid resolution. Choose one of {sorted(BOUNDARY_RESOLUTIONS)}.")

        self.year = year
        self.resolution = resolution
        self.output_dir = output_dir

        self._client_kwargs = client_kwargs
        self._boundary_client = None

    def __repr__(self) -> str:
        return f'BoundaryProvider ({self.year}, {self.resolution})\n  output directory: {self.output_dir}\n'

    @property
    def boundary_client(self) -> BoundaryClient:
        if self._boundary_client is None:
            self._boundary_client = BoundaryClient(**self._client_kwargs)
        return self._boundary_client

    def close(self) -> None:
        """
        Closes the download client, if one was started.
        """
        if self._boundary_client is not None:
            self._boundary_client.close_sync()
            self._boundary_client = None

    def file_name(self, level: str) -> str:
        """
        The name of the zip file holding the boundaries of ``level``, for example
        ``cb_2023_us_state_500k.zip``.

        Parameters
        ==========
        level : :obj:`str`
            The geography level: ``state`` or ``county``.
        """
        if level not in BOUNDARY_LEVELS:
            raise BoundaryError(f"Boundaries for '{level}' are not supported. Choose one of {sorted(BOUNDARY_LEVELS)}.")
        token = BOUNDARY_LEVELS[level][0]
        return f'cb_{self.year}_us_{token}_{self.resolution}.zip'

    def url(self, level: str) -> str:
        """
        The path of the zip file on the file server, relative to
        ``https://www2.census.gov/geo/tiger/``.

        Parameters
        ==========
        level : :obj:`str`
            The geography level: ``state`` or ``county``.
        """
        # 2013 files sit directly under GENZ2013, later ones under GENZ<year>/shp
        if self.year == EARLIEST_BOUNDARY_YEAR:
            return f'GENZ{self.year}/{self.file_name(level)}'
        return f'GENZ{self.year}/shp/{self.file_name(level)}'

    def download(self, level: str) -> str:
        """
        Downloads the zip file for ``level`` into ``output_dir`` unless it is already
        there, and returns its local path.

        Parameters
        ==========
        level : :obj:`str`
            The geography level: ``state`` or ``county``.
        """
        local_path = path.join(self.output_dir, self.file_name(level))
        if path.exists(local_path):
            return local_path

        makedirs(self.output_dir, exist_ok=True)
        response = self.boundary_client.get_sync(url=self.url(level))

        partial_path = local_path + '.part'
        with open(partial_path, 'wb') as f:
            f.write(response.content)
        replace(partial_path, local_path)

        return local_path

    def get(self, level: str) -> GeoDataFrame:
        """
        Returns the boundaries of ``level`` as a :class:`geopandas.GeoDataFrame`
        with (at least) ``GEOID``, ``NAME`` and ``geometry`` columns.

        Parameters
        ==========
        level : :obj:`str`
            The geography level: ``state`` or ``county``.
        """
        return read_file(self.download(level))

    def states(self) -> GeoDataFrame:
        """
        Returns the state (and state-equivalent) boundaries.
        """
        return self.get('state')

    def counties(self) -> GeoDataFrame:
        """
        Returns the county (and county-equivalent) boundaries.
        """
        return self.get('county')


def join_with_boundaries(snapshot: YearlySnapshot, geography_level: str = 'state', output_dir: str = 'boundaries', year: int = None, by: str = 'geo_id', how: str = 'inner', resolution: str = '500k', boundaries: GeoDataFrame = None) -> GeoDataFrame:
    """
    Attaches boundaries to a snapshot. The result keeps the snapshot's columns and
    row order and adds a ``geometry`` column.

    Parameters
    ==========
    snapshot : :class:`.YearlySnapshot`
        The normalized survey data.
    geography_level : :obj:`str` = 'state'
        The geography level of the snapshot: ``state`` or ``county``.
    output_dir : :obj:`str` = 'boundaries'
        Where boundary files are downloaded to and cached.
    year : :obj:`int` = None
        The boundary year. Defaults to the snapshot's vintage.
    by : :obj:`str` = 'geo_id'
        Join on the geographic identifier (``geo_id``) or on the display name
        (``name``). Joining by name is only possible for states. Boundaries with a
        repeated key raise a :class:`.BoundaryError`.
    how : :obj:`str` = 'inner'
        ``inner`` drops geographies without a boundary; ``left`` keeps them with an
        empty geometry.
    resolution : :obj:`str` = '500k'
        The generalization of the boundaries.
    boundaries : :class:`geopandas.GeoDataFrame` = None
        Already loaded boundaries to use instead of downloading them.
    """
    if geography_level not in BOUNDARY_LEVELS:
        raise BoundaryError(f"Boundaries for '{geography_level}' are not supported. Choose one of {sorted(BOUNDARY_LEVELS)}.")
    if how not in ('inner', 'left'):
        raise ValueError("'how' should either be 'inner' or 'left'")

    _, id_col, name_col = BOUNDARY_LEVELS[geography_level]
    if by == 'geo_id':
        left_on, right_on = 'geo_id', id_col
    elif by == 'name':
        # county display names ("Washington County, Alabama") do not match the bare
        # NAME in the boundary file, and bare county names repeat across states
        if geography_level != 'state':
            raise BoundaryError(f"Joining by name is only supported for states. Join {geography_level} data by 'geo_id' instead.")
        left_on, right_on = 'geography_name', name_col
    else:
        raise ValueError("'by' should either be 'geo_id' or 'name'")

    if boundaries is None:
        if year is None:
            year = snapshot.vintage
        if year is None:
            raise ValueError('The snapshot has no vintage, so the boundary year must be given.')
        provider = BoundaryProvider(year=year, resolution=resolution, output_dir=output_dir)
        try:
            boundaries = provider.get(geography_level)
        finally:
            provider.close()

    boundary_keys = boundaries[[right_on, 'geometry']].rename(columns={right_on: '_boundary_key'})
    try:
        joined = DataFrame(snapshot).merge(boundary_keys, left_on=left_on, right_on='_boundary_key', how=how, validate='many_to_one')
    except MergeError:
        raise BoundaryError(f"The boundaries have more than one geography per '{right_on}', so the join would duplicate rows.")
    joined = joined.drop(labels='_boundary_key', axis=1)
    joined = joined.sort_values(by='geography_name', kind='stable').reset_index(drop=True)

    return GeoDataFrame(joined, geometry='geometry', crs=boundaries.crs)


def _transform_geometry(geometry, scale, center, x_offset, y_offset, rotation):
    if geometry is None:
        return geometry
    geometry = affinity.scale(geometry, scale, scale, scale, origin=center)
    geometry = affinity.rotate(geometry, rotation, origin=center)
    geometry = affinity.translate(geometry, x_offset, y_offset)
    return geometry


def _transform(data: GeoDataFrame, state_codes: Series, transformations: Dict[str, Tuple]) -> GeoDataFrame:
    for s, (scale, x_offset, y_offset, rotation) in transformations.items():
        mask = state_codes == s
        if not mask.any():
            continue
        centroid = union_all(data.loc[mask, 'geometry'].values).centroid
        data.loc[mask, 'geometry'] = data.loc[mask, 'geometry'].apply(_transform_geometry, args=(scale, centroid, x_offset, y_offset, rotation))

    return data


# state FIPS -> (scale, x offset, y offset, rotation) in EPSG:2163 metres
CONTINENTAL_EA_BELOW = {
    '02': (1, 600000, -5250000, 45),
    '15': (1, 5000000, -1100000, 45),
    '72': (1, -2500000, 300000, 0)
}

CONTINENTAL_SCALED_BELOW = {
    '02': (0.4, 700000, -4750000, 45),
    '15': (1, 5000000, -1100000, 45),
    '72': (1, -2500000, 300000, 0)
}

CONTINENTAL_EA_OUTSIDE = {
    '02': (1, 550000, -1250000, 45),
    '15': (1, 3100000, -75000, 45),
    '72': (1, -1300000, 200000, 0)
}

CONTINENTAL_SCALED_OUTSIDE = {
    '02': (0.4, 550000, -1750000, 45),
    '15': (1, 3100000, -75000, 45),
    '72': (1, -1300000, 200000, 0)
}


def shift_geometry(data: GeoDataFrame, id_column: str = 'geo_id', position: str = 'below', preserve_area: bool = False, custom_transformations: Dict[str, Tuple] = None) -> GeoDataFrame:
    """
    Moves Alaska, Hawaii and Puerto Rico next to the contiguous United States so a
    national map does not waste most of its area on ocean. Returns a new
    :class:`geopandas.GeoDataFrame` in the original CRS.

    Parameters
    ==========
    data : :class:`geopandas.GeoDataFrame`
        State or county level data with a CRS.
    id_column : :obj:`str` = 'geo_id'
        The column holding state FIPS codes, or identifiers starting with one (for
        example five-digit county GEOIDs).
    position : :obj:`str` = 'below'
        ``below`` puts the states under the contiguous states, ``outside`` puts them
        to the lower left and right.
    preserve_area : :obj:`bool` = False
        If ``False``, Alaska is shrunk to 40% of its size.
    custom_transformations : :obj:`dict` of :obj:`str`: :obj:`tuple` = None
        State FIPS code -> ``(scale, x_offset, y_offset, rotation)``, used instead of
        the built-in placements.
    """
    if custom_transformations:
        transformations = custom_transformations
    elif position == 'below' and preserve_area is True:
        transformations = CONTINENTAL_EA_BELOW
    elif position == 'below' and preserve_area is False:
        transformations = CONTINENTAL_SCALED_BELOW
    elif position == 'outside' and preserve_area is True:
        transformations = CONTINENTAL_EA_OUTSIDE
    elif position == 'outside' and preserve_area is False:
        transformations = CONTINENTAL_SCALED_OUTSIDE
    else:
        raise ValueError('Must set position to either below or outside, and must set preserve_area to True or False, or you may use custom_transformations.')

    if data.crs is None:
        raise BoundaryError('The data has no CRS, so its geometry cannot be shifted.')

    original_crs = data.crs
    data = data.to_crs(crs='EPSG:2163')

    state_codes = data[id_column].astype(str).str[:2]
    data = _transform(data, state_codes, transformations)

    return data.to_crs(crs=original_crs)
